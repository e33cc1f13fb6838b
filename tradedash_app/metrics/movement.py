"""
Quote-to-quote movement detection.

Each accepted update is compared with the previous accepted price of the
same asset. Moves in ``[tier1_pct, tier2_pct)`` raise a toast; moves of at
least ``tier2_pct`` are queued as alerts (bounded, oldest evicted) and
persisted through the dispatcher.
"""

import uuid
from collections import deque
from typing import Callable, Optional

import structlog

from ..config.defaults import MovementParams
from ..data.models import PriceUpdate
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.events import MovementAlertRaised, MovementToast
from ..utils.time import Clock, utc_now
from .models import MovementAlert, MovementDirection

logger = structlog.get_logger(__name__)


def change_percent(prev_price: Optional[float], new_price: float) -> Optional[float]:
    """Absolute percent change, None without a usable previous price."""
    if prev_price is None or prev_price <= 0:
        return None
    return abs(new_price - prev_price) / prev_price * 100.0


class MovementDetector:
    """Raises tiered alerts on large single-step price moves."""

    def __init__(
        self,
        params: MovementParams,
        dispatcher: NotificationDispatcher,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex
    ):
        self.params = params
        self.dispatcher = dispatcher
        self._clock = clock
        self._id_factory = id_factory
        self._alerts: deque[MovementAlert] = deque(maxlen=params.max_alerts)

    def on_price_update(self, update: PriceUpdate) -> None:
        """Aggregator listener."""
        self.observe(update)

    def observe(self, update: PriceUpdate) -> Optional[MovementAlert]:
        """
        Classify one accepted update.

        Returns:
            The queued alert for a tier-2 move, otherwise None
        """
        pct = change_percent(update.prev_price, update.new_price)
        if pct is None or pct < self.params.tier1_pct:
            return None

        if pct < self.params.tier2_pct:
            logger.info("Tier 1 movement", symbol=update.symbol, change_pct=round(pct, 4))
            self.dispatcher.dispatch(MovementToast(
                symbol=update.symbol,
                change_pct=pct,
                prev_price=update.prev_price,
                new_price=update.new_price,
            ))
            return None

        alert = MovementAlert(
            id=self._id_factory(),
            symbol=update.symbol,
            prev_price=update.prev_price,
            new_price=update.new_price,
            change_pct=pct,
            direction=MovementDirection.UP if update.new_price > update.prev_price else MovementDirection.DOWN,
            created_at=self._clock(),
        )
        if len(self._alerts) == self._alerts.maxlen:
            logger.debug("Evicting oldest movement alert", alert_id=self._alerts[0].id)
        self._alerts.append(alert)

        logger.warning(
            "Tier 2 movement",
            symbol=alert.symbol,
            change_pct=round(pct, 4),
            direction=alert.direction.value,
            alert_id=alert.id
        )
        self.dispatcher.dispatch(MovementAlertRaised(alert=alert))
        return alert

    def pending_alerts(self) -> list[MovementAlert]:
        """Undismissed alerts, oldest first."""
        return [a for a in self._alerts if not a.dismissed]

    def current_alert(self) -> Optional[MovementAlert]:
        pending = self.pending_alerts()
        return pending[0] if pending else None

    def dismiss(self, alert_id: str) -> Optional[MovementAlert]:
        for index, alert in enumerate(self._alerts):
            if alert.id == alert_id:
                if alert.dismissed:
                    return alert
                dismissed = alert.with_dismissed()
                self._alerts[index] = dismissed
                return dismissed
        return None

    def trade_now(self, alert_id: str) -> Optional[MovementAlert]:
        """Dismiss the alert and hand it back so the caller can select its asset."""
        return self.dismiss(alert_id)
