"""
Read-only routes over the cached datasets.

Endpoints:
    GET /health                     Liveness plus scheduler / last run state
    GET /indexes                    Supported index names
    GET /tickers/{index}            Constituent symbols
    GET /fundamentals/{index}       Reference records
    GET /heatmaps/{index}?period=   Heatmap, optionally one period

Handlers are plain ``def`` so FastAPI runs them in its threadpool; a cold
cache read may go to the object store.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from ticker_spine.api.deps import OrchestratorDep, SchedulerDep, Service

router = APIRouter()


@router.get("/health", tags=["health"])
def health(orchestrator: OrchestratorDep, scheduler: SchedulerDep) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "ok"}
    if orchestrator is not None:
        last = orchestrator.last_run
        body["orchestrator"] = {
            "state": orchestrator.state.value,
            "last_run": last.to_dict() if last else None,
        }
    if scheduler is not None:
        body["scheduler"] = scheduler.health()
    return body


@router.get("/indexes", tags=["datasets"])
def list_indexes(service: Service) -> list[str]:
    return service.indexes()


@router.get("/tickers/{index}", tags=["datasets"])
def get_tickers(index: str, service: Service) -> list[str]:
    return service.tickers(index)


@router.get("/fundamentals/{index}", tags=["datasets"])
def get_fundamentals(index: str, service: Service) -> list[dict[str, Any]]:
    return service.fundamentals(index)


@router.get("/heatmaps/{index}", tags=["datasets"])
def get_heatmap(
    index: str,
    service: Service,
    period: str | None = Query(default=None, description="e.g. ONE_MONTH"),
) -> Any:
    return service.heatmap(index, period)
