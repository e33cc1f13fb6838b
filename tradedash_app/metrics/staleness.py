"""
Feed staleness tracking.

Status per asset is derived from the time since its last accepted quote:
fresh below ``delayed_after_seconds``, delayed until ``expired_after_seconds``,
expired afterwards. Expired assets cannot be traded unless their push stream
is currently live.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from ..config.defaults import StalenessParams
from ..data.models import PriceUpdate
from ..utils.time import Clock, seconds_since, utc_now

logger = structlog.get_logger(__name__)


class StalenessStatus(str, Enum):
    FRESH = "fresh"
    DELAYED = "delayed"
    EXPIRED = "expired"
    UNKNOWN = "unknown"     # No accepted quote yet


@dataclass(frozen=True)
class StalenessReport:
    """Result of one evaluation for one asset."""
    symbol: str
    status: StalenessStatus
    age_seconds: Optional[float]
    stream_live: bool

    @property
    def tradable(self) -> bool:
        if self.stream_live:
            return True
        return self.status in (StalenessStatus.FRESH, StalenessStatus.DELAYED)


class StalenessTracker:
    """Derives fresh / delayed / expired status from last-accepted timestamps."""

    def __init__(
        self,
        params: StalenessParams,
        clock: Clock = utc_now,
        is_stream_live: Optional[Callable[[str], bool]] = None,
        refresher: Optional[Callable[[], Awaitable[object]]] = None
    ):
        self.params = params
        self._clock = clock
        self._is_stream_live = is_stream_live or (lambda symbol: False)
        self._refresher = refresher
        self._last_seen: dict[str, datetime] = {}
        self._reports: dict[str, StalenessReport] = {}

    def record(self, symbol: str, captured_at: datetime) -> None:
        current = self._last_seen.get(symbol)
        if current is None or captured_at > current:
            self._last_seen[symbol] = captured_at

    def on_price_update(self, update: PriceUpdate) -> None:
        """Aggregator listener."""
        self.record(update.symbol, update.captured_at)

    def forget(self, symbol: str) -> None:
        self._last_seen.pop(symbol, None)
        self._reports.pop(symbol, None)

    def age_seconds(self, symbol: str) -> Optional[float]:
        last = self._last_seen.get(symbol)
        if last is None:
            return None
        return max(0.0, seconds_since(last, self._clock()))

    def status(self, symbol: str) -> StalenessStatus:
        age = self.age_seconds(symbol)
        if age is None:
            return StalenessStatus.UNKNOWN
        if age < self.params.delayed_after_seconds:
            return StalenessStatus.FRESH
        if age < self.params.expired_after_seconds:
            return StalenessStatus.DELAYED
        return StalenessStatus.EXPIRED

    def report(self, symbol: str) -> StalenessReport:
        return StalenessReport(
            symbol=symbol,
            status=self.status(symbol),
            age_seconds=self.age_seconds(symbol),
            stream_live=self._is_stream_live(symbol),
        )

    def can_trade(self, symbol: str) -> bool:
        return self.report(symbol).tradable

    def evaluate(self) -> dict[str, StalenessReport]:
        """Recompute every tracked asset and log status changes."""
        reports = {}
        for symbol in list(self._last_seen):
            report = self.report(symbol)
            previous = self._reports.get(symbol)
            if previous is None or previous.status != report.status:
                log = logger.warning if report.status == StalenessStatus.EXPIRED else logger.info
                log(
                    "Staleness status changed",
                    symbol=symbol,
                    from_status=previous.status.value if previous else None,
                    to_status=report.status.value,
                    age_seconds=round(report.age_seconds or 0.0, 1),
                    stream_live=report.stream_live
                )
            reports[symbol] = report
        self._reports = reports
        return reports

    def last_reports(self) -> dict[str, StalenessReport]:
        return dict(self._reports)

    async def force_refresh(self) -> dict[str, StalenessReport]:
        """Re-issue all polls now, then re-evaluate."""
        if self._refresher is not None:
            await self._refresher()
        return self.evaluate()

    async def run(self) -> None:
        while True:
            self.evaluate()
            await asyncio.sleep(self.params.check_interval)
