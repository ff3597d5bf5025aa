"""Console alert channel."""

from __future__ import annotations

from typing import Any

from rich.console import Console

from ticker_spine.framework.alerts.base import BaseChannel
from ticker_spine.framework.alerts.protocol import (
    Alert,
    AlertSeverity,
    ChannelType,
    DeliveryResult,
)

_STYLES = {
    AlertSeverity.INFO: "blue",
    AlertSeverity.WARNING: "yellow",
    AlertSeverity.ERROR: "red",
    AlertSeverity.CRITICAL: "bold magenta",
}


class ConsoleChannel(BaseChannel):
    """Prints alerts to the terminal."""

    def __init__(
        self,
        name: str = "console",
        *,
        console: Console | None = None,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.CONSOLE, **kwargs)
        self._console = console or Console(stderr=True)

    def send(self, alert: Alert) -> DeliveryResult:
        style = _STYLES.get(alert.severity, "")
        self._console.print(
            f"[{alert.severity.value}] {alert.subject}",
            style=style,
            markup=False,
            highlight=False,
        )
        self._console.print(f"  Source: {alert.source}", markup=False, highlight=False)
        if alert.body:
            self._console.print(f"  {alert.body}", markup=False, highlight=False)
        return DeliveryResult.ok(self._name)
