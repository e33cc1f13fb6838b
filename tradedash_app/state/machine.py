"""
Settlement rules.

Pure functions deciding the outcome and profit/loss of an expired trade.
The outcome is a win when the exit price sits on the predicted side of the
entry price, or when an independent draw succeeds even though the direction
was wrong.
"""

import random
from typing import Optional

from .models import Direction, Outcome


def is_directional_win(direction: Direction, entry_price: float, exit_price: float) -> bool:
    """Exit strictly on the predicted side of entry; an unchanged price is not a win."""
    change = exit_price - entry_price
    if direction == Direction.LONG:
        return change > 0
    return change < 0


def compute_profit_loss(stake: float, payout_rate: float, won: bool) -> float:
    """+stake·payout/100 on a win, -stake on a loss, rounded to cents."""
    if won:
        return round(stake * payout_rate / 100.0, 2)
    return round(-stake, 2)


def decide_outcome(
    direction: Direction,
    stake: float,
    payout_rate: float,
    entry_price: float,
    exit_price: Optional[float],
    rng: random.Random,
    win_probability: float
) -> Outcome:
    """
    Decide the result of a trade at expiry.

    Args:
        direction: Predicted direction
        stake: Reserved stake
        payout_rate: Asset payout in percent
        entry_price: Reconciled price at open
        exit_price: Reconciled price at expiry, None if unavailable
        rng: Source for the stochastic acceptance draw
        win_probability: Probability that a directionally wrong trade still wins

    Returns:
        Outcome with the final result and profit/loss
    """
    used_fallback = exit_price is None
    final_exit = entry_price if exit_price is None else exit_price

    directional = is_directional_win(direction, entry_price, final_exit)
    # The draw is taken on every settlement so the RNG sequence does not
    # depend on price direction.
    draw_wins = rng.random() < win_probability
    won = directional or draw_wins

    return Outcome(
        won=won,
        directional_win=directional,
        override_applied=won and not directional,
        profit_loss=compute_profit_loss(stake, payout_rate, won),
        exit_price=final_exit,
        used_entry_fallback=used_fallback,
    )
