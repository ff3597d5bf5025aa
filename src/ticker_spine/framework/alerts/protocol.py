"""Notification data types and the channel protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

_SEVERITY_ORDER = ("INFO", "WARNING", "ERROR", "CRITICAL")


class AlertSeverity(str, Enum):
    """Alert severity levels, ordered INFO < WARNING < ERROR < CRITICAL."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self.value)

    def __lt__(self, other: AlertSeverity) -> bool:
        return self.rank < other.rank

    def __le__(self, other: AlertSeverity) -> bool:
        return self.rank <= other.rank

    def __gt__(self, other: AlertSeverity) -> bool:
        return self.rank > other.rank

    def __ge__(self, other: AlertSeverity) -> bool:
        return self.rank >= other.rank


class ChannelType(str, Enum):
    CONSOLE = "console"
    EMAIL = "email"
    MEMORY = "memory"


@dataclass
class Alert:
    """One notification: a subject line, a body and where it came from."""

    subject: str
    body: str
    severity: AlertSeverity = AlertSeverity.INFO
    source: str = "ticker-spine"
    run_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "subject": self.subject,
            "body": self.body,
            "severity": self.severity.value,
            "source": self.source,
            "created_at": self.created_at.isoformat(),
        }
        if self.run_id:
            result["run_id"] = self.run_id
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass
class DeliveryResult:
    """Result of one delivery attempt to one channel."""

    channel_name: str
    success: bool
    message: str | None = None
    error: Exception | None = None
    delivered_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def ok(cls, channel_name: str, message: str | None = None) -> DeliveryResult:
        return cls(channel_name=channel_name, success=True, message=message)

    @classmethod
    def fail(cls, channel_name: str, error: Exception) -> DeliveryResult:
        return cls(channel_name=channel_name, success=False, error=error, message=str(error))


@runtime_checkable
class AlertChannel(Protocol):
    """A destination for alerts."""

    @property
    def name(self) -> str: ...

    @property
    def channel_type(self) -> ChannelType: ...

    def should_send(self, alert: Alert) -> bool: ...

    def send(self, alert: Alert) -> DeliveryResult: ...


__all__ = [
    "AlertSeverity",
    "ChannelType",
    "Alert",
    "DeliveryResult",
    "AlertChannel",
]
