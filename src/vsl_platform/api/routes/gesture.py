"""
Gesture-to-text API routes.

Provides REST endpoints for the two-stage inference pipeline:
- POST /api/v1/gesture/process - Landmark frames -> corrected text
- POST /api/v1/gesture/process-video - Gesture video -> corrected text
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
import structlog

from vsl_platform.api.dependencies import get_pipeline
from vsl_platform.integration.inference_pipeline import InferencePipeline
from vsl_platform.models.api_models import ApiResponse, GestureResult
from vsl_platform.models.pipeline import PipelineRequest, PipelineResult


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/gesture", tags=["gesture"])


def _to_response(result: PipelineResult) -> JSONResponse:
    """Map a pipeline result onto the response envelope and HTTP status."""
    data = GestureResult.from_result(result)

    if result.ok:
        body = ApiResponse.ok("Gesture processed successfully", data)
        status_code = status.HTTP_200_OK
    elif result.failure.is_client_error:
        body = ApiResponse.error(result.message, data)
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        body = ApiResponse.error(result.message, data)
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.post("/process", response_model=ApiResponse[GestureResult])
async def process_gesture_endpoint(
    request: PipelineRequest,
    pipeline: InferencePipeline = Depends(get_pipeline)
) -> JSONResponse:
    """
    Convert landmark frames into corrected Vietnamese text.

    Returns:
        200 on success, 400 for empty frames, 503 naming the failed stage
    """
    logger.info(
        "gesture_request_received",
        frames=len(request.frames),
        has_context=bool(request.current_text)
    )

    # Two blocking HTTP calls
    result = await run_in_threadpool(pipeline.process, request)
    return _to_response(result)


@router.post("/process-video", response_model=ApiResponse[GestureResult])
async def process_video_endpoint(
    file: UploadFile = File(..., description="Gesture video"),
    current_text: str = Form(default="", description="Accumulated text context"),
    pipeline: InferencePipeline = Depends(get_pipeline)
) -> JSONResponse:
    """
    Convert an uploaded gesture video into corrected Vietnamese text.
    """
    content = await file.read()

    logger.info(
        "gesture_video_received",
        filename=file.filename,
        size_bytes=len(content)
    )

    result = await run_in_threadpool(
        pipeline.process_video,
        content,
        file.filename or "gesture.mp4",
        current_text,
        file.content_type or "video/mp4",
    )
    return _to_response(result)
