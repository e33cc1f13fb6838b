"""Toast and persisted alert models."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..utils.time import format_timestamp, parse_timestamp


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Toast:
    """Ephemeral message shown for a few seconds."""
    id: str
    severity: Severity
    message: str
    kind: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class AlertNotification:
    """Persisted notification for trade outcomes and large moves."""
    id: str
    kind: str
    severity: Severity
    message: str
    created_at: datetime
    trade_id: Optional[str] = None
    symbol: Optional[str] = None
    read: bool = False

    def with_read(self) -> "AlertNotification":
        return replace(self, read=True)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "severity": self.severity.value,
            "message": self.message,
            "trade_id": self.trade_id,
            "symbol": self.symbol,
            "read": self.read,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "AlertNotification":
        return cls(
            id=row["id"],
            kind=row["kind"],
            severity=Severity(row["severity"]),
            message=row["message"],
            trade_id=row.get("trade_id"),
            symbol=row.get("symbol"),
            read=bool(row.get("read", False)),
            created_at=parse_timestamp(row["created_at"]),
        )
