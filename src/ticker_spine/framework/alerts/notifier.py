"""
Fire-and-forget notifications.

``Notifier.send(subject, body)`` delivers to every registered channel that
accepts the alert's severity. A channel that fails or raises is logged and
skipped; ``send`` itself never raises, so notifications cannot abort a run.

Example:
    >>> notifier = Notifier([ConsoleChannel(), MemoryChannel()])
    >>> notifier.send("Run started", "Pass: full")
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from ticker_spine.framework.alerts.protocol import (
    Alert,
    AlertChannel,
    AlertSeverity,
    DeliveryResult,
)

logger = structlog.get_logger(__name__)


class Notifier:
    """Routes alerts to a set of channels."""

    def __init__(self, channels: Iterable[AlertChannel] = (), *, source: str = "ticker-spine"):
        self._channels: dict[str, AlertChannel] = {}
        self.source = source
        for channel in channels:
            self.register(channel)

    def register(self, channel: AlertChannel) -> None:
        self._channels[channel.name] = channel

    def send(
        self,
        subject: str,
        body: str = "",
        *,
        severity: AlertSeverity = AlertSeverity.INFO,
        run_id: str | None = None,
        **metadata: Any,
    ) -> list[DeliveryResult]:
        alert = Alert(
            subject=subject,
            body=body,
            severity=severity,
            source=self.source,
            run_id=run_id,
            metadata=metadata,
        )
        return self.send_alert(alert)

    def send_alert(self, alert: Alert) -> list[DeliveryResult]:
        results: list[DeliveryResult] = []
        for channel in list(self._channels.values()):
            if not channel.should_send(alert):
                continue
            try:
                result = channel.send(alert)
            except Exception as e:
                result = DeliveryResult.fail(channel.name, e)
            if not result.success:
                logger.warning(
                    "notify.delivery_failed",
                    channel=channel.name,
                    subject=alert.subject,
                    error=result.message,
                )
            results.append(result)
        return results


__all__ = ["Notifier"]
