"""Alert channel implementations."""

from ticker_spine.framework.alerts.channels.console import ConsoleChannel
from ticker_spine.framework.alerts.channels.email import EmailChannel
from ticker_spine.framework.alerts.channels.memory import MemoryChannel

__all__ = ["ConsoleChannel", "EmailChannel", "MemoryChannel"]
