"""Standard output alert sink."""

import sys
from typing import Any

import orjson

from ..config.alert_delivery import StdoutDeliveryConfig
from .base import BaseAlertSink, DeliveryResult, DeliveryStatus


class StdoutAlertSink(BaseAlertSink):
    """Print alerts to stdout as JSON or a one-line summary."""

    def _send(self, alert: dict[str, Any]) -> DeliveryResult:
        config: StdoutDeliveryConfig = self.config
        print(self._format_alert(alert, config), file=sys.stdout, flush=True)
        return DeliveryResult(status=DeliveryStatus.SUCCESS, message="Printed to stdout")

    @staticmethod
    def _format_alert(alert: dict[str, Any], config: StdoutDeliveryConfig) -> str:
        if config.format == "pretty":
            return f"[{alert['created_at']}] {alert['severity'].upper()} {alert['kind']}: {alert['message']}"
        return orjson.dumps(alert).decode()
