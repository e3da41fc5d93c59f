"""
Liveness endpoint.

Reports the search index as ``down`` without failing: search keeps working
through the store fallback, so the service is only ``degraded``.
"""

import time

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool

from ...models.api_models import HealthResponse
from ...version import API_VERSION

router = APIRouter()

_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    synchronizer = getattr(request.app.state, "synchronizer", None)

    if synchronizer is None:
        search_index, workers_alive = "unknown", 0
    else:
        reachable = await run_in_threadpool(synchronizer.index_reachable)
        search_index = "up" if reachable else "down"
        workers_alive = synchronizer.workers_alive

    return HealthResponse(
        status="degraded" if search_index == "down" else "healthy",
        version=API_VERSION,
        uptime_seconds=time.time() - _start_time,
        search_index=search_index,
        sync_workers_alive=workers_alive,
    )
