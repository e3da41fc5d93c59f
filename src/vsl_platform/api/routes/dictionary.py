"""
Dictionary API routes.

- GET /api/v1/dictionary/search - Index search with transparent store fallback
- POST /api/v1/dictionary - Create/update an entry (dual write)
- GET /api/v1/dictionary/sync-status - Synchronizer health
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
import structlog

from vsl_platform.api.dependencies import get_synchronizer
from vsl_platform.dictionary.synchronizer import IndexSynchronizer, SyncStatus
from vsl_platform.errors import ServiceError
from vsl_platform.models.api_models import (
    ApiResponse,
    DictionaryItem,
    DictionaryWriteRequest,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/dictionary", tags=["dictionary"])


def _envelope(body: ApiResponse, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.get("/search", response_model=ApiResponse[List[DictionaryItem]])
async def search_endpoint(
    query: str = Query(default="", description="Word or definition text"),
    synchronizer: IndexSynchronizer = Depends(get_synchronizer)
) -> JSONResponse:
    """
    Search dictionary entries.

    Index unavailability is never reported; results degrade to an unranked
    substring match.
    """
    try:
        entries = await run_in_threadpool(synchronizer.search, query)
    except ServiceError as e:
        if not e.failure.is_client_error:
            raise
        return _envelope(ApiResponse.error(e.failure.message), status.HTTP_400_BAD_REQUEST)

    items = [DictionaryItem.from_entry(entry) for entry in entries]
    return _envelope(
        ApiResponse.ok(f"Found {len(items)} result(s)", items),
        status.HTTP_200_OK,
    )


@router.post("", response_model=ApiResponse[DictionaryItem], status_code=status.HTTP_201_CREATED)
async def write_entry_endpoint(
    request: DictionaryWriteRequest,
    synchronizer: IndexSynchronizer = Depends(get_synchronizer)
) -> JSONResponse:
    """
    Create or update a dictionary entry.

    The store write completes synchronously; indexing happens in the
    background.
    """
    saved = await run_in_threadpool(synchronizer.write, request.to_entry())

    logger.info(
        "dictionary_entry_written",
        entry_id=saved.id,
        content_version=saved.content_version
    )

    message = "Dictionary word updated successfully" if request.id else "Dictionary word created successfully"
    return _envelope(
        ApiResponse.ok(message, DictionaryItem.from_entry(saved)),
        status.HTTP_201_CREATED,
    )


@router.get("/sync-status", response_model=SyncStatus)
async def sync_status_endpoint(
    synchronizer: IndexSynchronizer = Depends(get_synchronizer)
) -> SyncStatus:
    """Report queue depth, unsynced entries and sync counters."""
    return await run_in_threadpool(synchronizer.status)
