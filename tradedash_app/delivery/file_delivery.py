"""JSON-lines file alert sink."""

from pathlib import Path
from typing import Any

import orjson

from ..config.alert_delivery import DeliveryDestination, FileDeliveryConfig
from .base import BaseAlertSink, DeliveryResult, DeliveryStatus


class FileAlertSink(BaseAlertSink):
    """Append one JSON object per alert to a file."""

    def __init__(self, destination: DeliveryDestination):
        super().__init__(destination)
        self.config: FileDeliveryConfig = destination.config
        self.output_path = Path(self.config.output_path)

        if self.config.create_dirs:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def _send(self, alert: dict[str, Any]) -> DeliveryResult:
        try:
            with self.output_path.open("ab") as f:
                f.write(orjson.dumps(alert) + b"\n")
        except OSError as e:
            self.logger.warning(
                "Alert file write failed",
                delivery_name=self.name,
                output_path=str(self.output_path),
                error=str(e)
            )
            return DeliveryResult(status=DeliveryStatus.FAILED, message=f"File system error: {e}", error=e)

        return DeliveryResult(status=DeliveryStatus.SUCCESS, message=f"Written to {self.output_path}")
