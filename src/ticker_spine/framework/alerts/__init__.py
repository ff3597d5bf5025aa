"""
Notification framework.

Channels deliver ``Alert`` objects; ``Notifier`` fans a subject/body out to
every channel and contains their failures.
"""

from ticker_spine.framework.alerts.base import BaseChannel
from ticker_spine.framework.alerts.channels import (
    ConsoleChannel,
    EmailChannel,
    MemoryChannel,
)
from ticker_spine.framework.alerts.notifier import Notifier
from ticker_spine.framework.alerts.protocol import (
    Alert,
    AlertChannel,
    AlertSeverity,
    ChannelType,
    DeliveryResult,
)

__all__ = [
    "AlertSeverity",
    "ChannelType",
    "Alert",
    "DeliveryResult",
    "AlertChannel",
    "BaseChannel",
    "ConsoleChannel",
    "EmailChannel",
    "MemoryChannel",
    "Notifier",
]
