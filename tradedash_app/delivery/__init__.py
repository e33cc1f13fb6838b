"""
Alert delivery module.

Broadcast sinks for persisted alerts: stdout, HTTP webhook and JSON-lines
file. Sinks are fire-and-forget and never retry.
"""

from .base import BaseAlertSink, DeliveryResult, DeliveryStatus
from .factory import create_sinks
from .file_delivery import FileAlertSink
from .http_delivery import HttpAlertSink
from .stdout_delivery import StdoutAlertSink

__all__ = [
    "BaseAlertSink",
    "DeliveryResult",
    "DeliveryStatus",
    "FileAlertSink",
    "HttpAlertSink",
    "StdoutAlertSink",
    "create_sinks",
]
