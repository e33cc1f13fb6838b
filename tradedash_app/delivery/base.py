"""Base classes for alert broadcast sinks."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import structlog

from ..config.alert_delivery import DeliveryDestination


class DeliveryStatus(Enum):
    """Alert delivery status."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryResult:
    """Result of a single delivery attempt."""
    status: DeliveryStatus
    message: Optional[str] = None
    delivery_time_ms: Optional[int] = None
    error: Optional[Exception] = None


class BaseAlertSink(ABC):
    """Base class for alert broadcast sinks."""

    def __init__(self, destination: DeliveryDestination):
        self.destination = destination
        self.name = destination.name
        self.config = destination.config
        self.logger = structlog.get_logger(f"alert.delivery.{self.name}")
        self._delivery_count = 0
        self._error_count = 0

    @abstractmethod
    def _send(self, alert: dict[str, Any]) -> DeliveryResult:
        """Send one alert record to the destination."""

    def deliver(self, alert: dict[str, Any]) -> DeliveryResult:
        """
        Deliver one alert if the destination accepts it.

        Exceptions from the concrete sink are converted to a FAILED result;
        there is no retry.
        """
        if not self.destination.accepts(alert.get("kind", ""), alert.get("severity", "")):
            return DeliveryResult(status=DeliveryStatus.SKIPPED, message="Filtered by destination")

        start_time = time.monotonic()
        try:
            result = self._send(alert)
        except Exception as e:
            self.logger.error(
                "Alert delivery raised",
                delivery_name=self.name,
                alert_id=alert.get("id"),
                error=str(e)
            )
            result = DeliveryResult(status=DeliveryStatus.FAILED, message=str(e), error=e)

        result.delivery_time_ms = int((time.monotonic() - start_time) * 1000)
        if result.status == DeliveryStatus.SUCCESS:
            self._delivery_count += 1
        else:
            self._error_count += 1
        return result

    def close(self) -> None:
        """Release sink resources."""

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        total = self._delivery_count + self._error_count
        return {
            "name": self.name,
            "delivery_count": self._delivery_count,
            "error_count": self._error_count,
            "success_rate": self._delivery_count / total if total > 0 else 0.0,
        }
