"""Acquisition pass orchestration and scheduling."""

from ticker_spine.orchestration.orchestrator import (
    ErrorChannel,
    Orchestrator,
    Phase,
    RunRecord,
    RunState,
)
from ticker_spine.orchestration.scheduler import CronScheduler

__all__ = [
    "ErrorChannel",
    "Orchestrator",
    "Phase",
    "RunRecord",
    "RunState",
    "CronScheduler",
]
