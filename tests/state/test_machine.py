"""Tests for settlement outcome and profit/loss rules."""

import pytest

from tradedash_app.state.machine import compute_profit_loss, decide_outcome, is_directional_win
from tradedash_app.state.models import Direction

from ..helpers import FixedRandom


class TestDirectionalWin:

    @pytest.mark.parametrize("direction,entry,exit_price,expected", [
        (Direction.LONG, 100.0, 101.0, True),
        (Direction.LONG, 100.0, 99.0, False),
        (Direction.SHORT, 100.0, 99.0, True),
        (Direction.SHORT, 100.0, 101.0, False),
        (Direction.LONG, 100.0, 100.0, False),
        (Direction.SHORT, 100.0, 100.0, False),
    ])
    def test_directional_win(self, direction, entry, exit_price, expected):
        assert is_directional_win(direction, entry, exit_price) is expected


class TestProfitLoss:

    def test_win_pays_stake_times_payout(self):
        assert compute_profit_loss(100, 95, True) == 95.0
        assert compute_profit_loss(33.33, 88, True) == 29.33

    def test_loss_costs_the_stake(self):
        assert compute_profit_loss(100, 95, False) == -100.0


class TestDecideOutcome:
    """Test the combined directional and stochastic decision."""

    def test_correct_direction_wins_regardless_of_draw(self):
        outcome = decide_outcome(Direction.LONG, 100, 95, 50000, 50500, FixedRandom(0.99), 0.55)

        assert outcome.won
        assert outcome.directional_win
        assert not outcome.override_applied
        assert outcome.profit_loss == 95.0

    def test_wrong_direction_loses_when_draw_fails(self):
        outcome = decide_outcome(Direction.LONG, 100, 95, 50000, 49000, FixedRandom(0.55), 0.55)

        assert not outcome.won
        assert outcome.profit_loss == -100.0

    def test_wrong_direction_rescued_by_draw(self):
        outcome = decide_outcome(Direction.SHORT, 100, 90, 100, 110, FixedRandom(0.2), 0.55)

        assert outcome.won
        assert outcome.override_applied
        assert outcome.profit_loss == 90.0

    def test_zero_probability_disables_override(self):
        outcome = decide_outcome(Direction.SHORT, 100, 90, 100, 110, FixedRandom(0.0), 0.0)

        assert not outcome.won

    def test_missing_exit_uses_entry(self):
        outcome = decide_outcome(Direction.LONG, 100, 95, 50000, None, FixedRandom(0.99), 0.55)

        assert outcome.exit_price == 50000
        assert outcome.used_entry_fallback
        assert not outcome.won
