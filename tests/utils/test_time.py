"""Tests for clock helpers."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from tradedash_app.utils.time import (
    ManualClock,
    add_seconds,
    format_timestamp,
    parse_timestamp,
    seconds_since,
    seconds_until,
    utc_now,
)

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestUtcNow:

    def test_is_timezone_aware(self):
        assert utc_now().tzinfo is not None

    def test_seconds_since_defaults_to_wall_clock(self):
        with patch("tradedash_app.utils.time.utc_now", return_value=T0 + timedelta(seconds=42)):
            assert seconds_since(T0) == 42.0


class TestIntervals:

    def test_seconds_since(self):
        assert seconds_since(T0, T0 + timedelta(seconds=30)) == 30.0

    def test_seconds_since_future_is_negative(self):
        assert seconds_since(T0 + timedelta(seconds=5), T0) == -5.0

    def test_seconds_until_never_negative(self):
        assert seconds_until(T0, T0 + timedelta(seconds=10)) == 0.0
        assert seconds_until(T0 + timedelta(seconds=3), T0) == 3.0

    def test_add_seconds(self):
        assert add_seconds(T0, 172800) == datetime(2024, 1, 3, 12, 0, 0, tzinfo=timezone.utc)


class TestTimestampFormatting:

    def test_round_trip(self):
        assert parse_timestamp(format_timestamp(T0)) == T0

    def test_naive_values_taken_as_utc(self):
        assert parse_timestamp("2024-01-01T12:00:00") == T0

    def test_none(self):
        assert format_timestamp(None) is None
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None


class TestManualClock:

    def test_only_moves_when_told(self):
        clock = ManualClock(T0)

        assert clock() == T0
        assert clock.advance(1.5) == T0 + timedelta(seconds=1.5)
        assert clock() == T0 + timedelta(seconds=1.5)

        clock.set(T0)
        assert clock() == T0
