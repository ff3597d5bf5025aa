"""
FastAPI application factory.

``create_app()`` takes already-built components; it never constructs
storage clients itself, so tests pass in-memory ones.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ticker_spine import __version__
from ticker_spine.api.routes import router
from ticker_spine.core.errors import DatasetUnavailableError, UnsupportedIndexError
from ticker_spine.domain.service import DataService
from ticker_spine.orchestration import CronScheduler, Orchestrator

NOT_AVAILABLE = "not currently available"


async def dataset_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": NOT_AVAILABLE})


async def unsupported_index_handler(request: Request, exc: Exception) -> JSONResponse:
    kind = getattr(exc, "kind", "index")
    return JSONResponse(status_code=404, content={"error": str(exc), kind: getattr(exc, "name", None)})


def create_app(
    service: DataService,
    *,
    orchestrator: Orchestrator | None = None,
    scheduler: CronScheduler | None = None,
) -> FastAPI:
    app = FastAPI(title="ticker-spine", version=__version__)
    app.state.service = service
    app.state.orchestrator = orchestrator
    app.state.scheduler = scheduler

    app.add_exception_handler(DatasetUnavailableError, dataset_unavailable_handler)
    app.add_exception_handler(UnsupportedIndexError, unsupported_index_handler)
    app.include_router(router)
    return app


__all__ = ["NOT_AVAILABLE", "create_app"]
