"""Request-scoped access to the objects ``create_app()`` stores on app state."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from ticker_spine.domain.service import DataService
from ticker_spine.orchestration import CronScheduler, Orchestrator


def get_service(request: Request) -> DataService:
    return request.app.state.service


def get_orchestrator(request: Request) -> Orchestrator | None:
    return request.app.state.orchestrator


def get_scheduler(request: Request) -> CronScheduler | None:
    return request.app.state.scheduler


Service = Annotated[DataService, Depends(get_service)]
OrchestratorDep = Annotated[Orchestrator | None, Depends(get_orchestrator)]
SchedulerDep = Annotated[CronScheduler | None, Depends(get_scheduler)]
