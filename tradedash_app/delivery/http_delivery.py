"""HTTP webhook alert sink."""

from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from ..config.alert_delivery import DeliveryDestination, HttpDeliveryConfig
from ..errors import DeliveryError
from .base import BaseAlertSink, DeliveryResult, DeliveryStatus


class HttpAlertSink(BaseAlertSink):
    """POST alerts as JSON to a webhook."""

    def __init__(self, destination: DeliveryDestination, client: Optional[httpx.Client] = None):
        super().__init__(destination)
        self.config: HttpDeliveryConfig = destination.config

        parsed = urlparse(self.config.url)
        if not parsed.scheme or not parsed.netloc:
            raise DeliveryError(
                f"Invalid URL: {self.config.url}",
                delivery_method="http_post"
            )

        headers = {"User-Agent": "tradedash-app/0.1"}
        if self.config.headers:
            headers.update(self.config.headers)
        self._client = client or httpx.Client(headers=headers, timeout=self.config.timeout_seconds)

    def _send(self, alert: dict[str, Any]) -> DeliveryResult:
        try:
            response = self._client.request(self.config.method, self.config.url, json=alert)
        except httpx.HTTPError as e:
            self.logger.warning(
                "Webhook request failed",
                delivery_name=self.name,
                alert_id=alert.get("id"),
                error=str(e)
            )
            return DeliveryResult(status=DeliveryStatus.FAILED, message=f"HTTP error: {e}", error=e)

        if response.status_code >= 400:
            self.logger.warning(
                "Webhook rejected alert",
                delivery_name=self.name,
                alert_id=alert.get("id"),
                status_code=response.status_code
            )
            return DeliveryResult(
                status=DeliveryStatus.FAILED,
                message=f"HTTP {response.status_code}"
            )

        return DeliveryResult(status=DeliveryStatus.SUCCESS, message=f"HTTP {response.status_code}")

    def close(self) -> None:
        self._client.close()
