"""
Clock helpers shared by the feed, staleness and settlement timers.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def seconds_since(start_time: datetime, now: Optional[datetime] = None) -> float:
    """
    Calculate elapsed seconds since ``start_time``.

    Args:
        start_time: Earlier timestamp
        now: Reference time, defaults to the wall clock

    Returns:
        Elapsed time in seconds (negative if ``start_time`` is in the future)
    """
    if now is None:
        now = utc_now()
    return (now - start_time).total_seconds()


def seconds_until(deadline: datetime, now: Optional[datetime] = None) -> float:
    """Seconds remaining until ``deadline``, never negative."""
    if now is None:
        now = utc_now()
    return max(0.0, (deadline - now).total_seconds())


def add_seconds(ts: datetime, seconds: float) -> datetime:
    return ts + timedelta(seconds=seconds)


def format_timestamp(ts: Optional[datetime]) -> Optional[str]:
    """ISO8601 formatting for persisted rows and log fields."""
    return ts.isoformat() if ts is not None else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Inverse of ``format_timestamp``; naive values are taken as UTC."""
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class ManualClock:
    """
    Clock that only moves when told to.

    Used by the demo script and the test-suite to drive staleness windows,
    grace periods and trade expiry without sleeping.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or utc_now()

    def __call__(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now
