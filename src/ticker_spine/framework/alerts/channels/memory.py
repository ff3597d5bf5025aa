"""In-memory alert channel; keeps every alert it receives."""

from __future__ import annotations

import threading
from typing import Any

from ticker_spine.framework.alerts.base import BaseChannel
from ticker_spine.framework.alerts.protocol import Alert, ChannelType, DeliveryResult


class MemoryChannel(BaseChannel):
    def __init__(self, name: str = "memory", **kwargs: Any):
        super().__init__(name, ChannelType.MEMORY, **kwargs)
        self._alerts: list[Alert] = []
        self._lock = threading.Lock()

    @property
    def alerts(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts)

    @property
    def subjects(self) -> list[str]:
        return [alert.subject for alert in self.alerts]

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()

    def send(self, alert: Alert) -> DeliveryResult:
        with self._lock:
            self._alerts.append(alert)
        return DeliveryResult.ok(self._name)
