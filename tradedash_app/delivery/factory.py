"""Build sinks from the alert delivery configuration."""

import structlog

from ..config.alert_delivery import AlertDeliveryConfig, DeliveryMethod
from .base import BaseAlertSink
from .file_delivery import FileAlertSink
from .http_delivery import HttpAlertSink
from .stdout_delivery import StdoutAlertSink

logger = structlog.get_logger(__name__)

SINK_TYPES = {
    DeliveryMethod.HTTP_POST: HttpAlertSink,
    DeliveryMethod.FILE_OUTPUT: FileAlertSink,
    DeliveryMethod.STDOUT: StdoutAlertSink,
}


def create_sinks(config: AlertDeliveryConfig) -> list[BaseAlertSink]:
    """Instantiate one sink per enabled destination."""
    if not config.enabled:
        return []

    sinks = []
    for destination in config.destinations:
        if not destination.enabled:
            logger.debug("Skipping disabled destination", destination=destination.name)
            continue
        sinks.append(SINK_TYPES[destination.method](destination))
    return sinks
