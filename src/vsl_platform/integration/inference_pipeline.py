"""
Two-stage gesture-to-text inference pipeline.

Coordinates:
1. Gesture recognition service: landmark frames (or video) -> raw text
2. Accent correction service: raw text -> accented Vietnamese text

The stages run strictly in sequence on the calling thread because stage 2
consumes stage 1's output. Failures are attributed to the stage that caused
them and returned as values; nothing is retried and nothing is persisted.
"""

from enum import Enum
from typing import Any, Dict, Optional

import structlog

from vsl_platform.config import Settings, settings as default_settings
from vsl_platform.errors import ErrorKind, Failure
from vsl_platform.integration.external_caller import (
    CallFailureReason,
    ExternalCallError,
    ExternalCaller,
)
from vsl_platform.models.pipeline import (
    PipelineRequest,
    PipelineResult,
    PipelineStage,
    PipelineStatus,
)


logger = structlog.get_logger(__name__)

GESTURE_PATH = "/predict-gesture"
CORRECTION_PATH = "/add-accents"

STAGE_LABELS = {
    PipelineStage.GESTURE: "Gesture Recognition Model",
    PipelineStage.CORRECTION: "Accent Correction Model",
}


class _State(str, Enum):
    AWAITING_GESTURE = "awaiting_gesture"
    AWAITING_CORRECTION = "awaiting_correction"
    DONE = "done"
    FAILED = "failed"


def extract_text(payload: Dict[str, Any], service: str) -> str:
    """
    Pull the trimmed ``text`` field out of a service response.

    Raises:
        ExternalCallError: If ``text`` is absent, not a string or blank
    """
    text = payload.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ExternalCallError(
            service=service,
            reason=CallFailureReason.MALFORMED_PAYLOAD,
            message=f"{service} returned empty or invalid text",
        )
    return text.strip()


# ============================================================================
# PIPELINE
# ============================================================================

class InferencePipeline:
    """
    Gesture-to-text pipeline over two independently deployed services.

    Stateless apart from its two callers: concurrent ``process`` calls for
    independent requests share no mutable state.
    """

    def __init__(self, gesture_caller: ExternalCaller, correction_caller: ExternalCaller):
        self.gesture_caller = gesture_caller
        self.correction_caller = correction_caller

    def process(self, request: PipelineRequest) -> PipelineResult:
        """
        Run landmark frames through both stages.

        Args:
            request: Frames plus current text context

        Returns:
            PipelineResult; ``failure`` is set whenever status is not success
        """
        if not request.frames:
            return self._invalid_input("Frames cannot be empty")

        log = logger.bind(frames=len(request.frames))
        log.info("pipeline_started", state=_State.AWAITING_GESTURE.value)

        payload = {"frames": [frame.model_dump() for frame in request.frames]}
        return self._run(
            log,
            lambda: self.gesture_caller.post_json(GESTURE_PATH, payload),
            request.current_text,
        )

    def process_video(
        self,
        content: bytes,
        filename: str = "gesture.mp4",
        current_text: str = "",
        content_type: str = "video/mp4"
    ) -> PipelineResult:
        """
        Run an uploaded gesture video through both stages.

        The video is sent to the gesture service as multipart field ``file``.
        """
        if not content:
            return self._invalid_input("Video file is required")

        log = logger.bind(filename=filename, size_bytes=len(content))
        log.info("pipeline_started", state=_State.AWAITING_GESTURE.value)

        files = {"file": (filename, content, content_type)}
        return self._run(
            log,
            lambda: self.gesture_caller.post_multipart(GESTURE_PATH, files=files),
            current_text,
        )

    def _run(self, log, call_gesture, current_text: str) -> PipelineResult:
        # Stage 1
        try:
            raw_text = extract_text(call_gesture(), self.gesture_caller.service_name)
        except ExternalCallError as e:
            return self._stage_failed(log, PipelineStage.GESTURE, e)

        log.info(
            "pipeline_stage_completed",
            stage=PipelineStage.GESTURE.value,
            state=_State.AWAITING_CORRECTION.value,
            raw_text=raw_text
        )

        # Stage 2
        body = {"text": raw_text}
        if current_text:
            body["current_text"] = current_text

        try:
            corrected_text = extract_text(
                self.correction_caller.post_json(CORRECTION_PATH, body),
                self.correction_caller.service_name,
            )
        except ExternalCallError as e:
            return self._stage_failed(log, PipelineStage.CORRECTION, e, raw_text=raw_text)

        log.info(
            "pipeline_completed",
            state=_State.DONE.value,
            raw_text=raw_text,
            corrected_text=corrected_text
        )
        return PipelineResult(
            status=PipelineStatus.SUCCESS,
            raw_text=raw_text,
            corrected_text=corrected_text,
            message="Gesture recognition completed successfully",
        )

    def _stage_failed(
        self,
        log,
        stage: PipelineStage,
        error: ExternalCallError,
        raw_text: Optional[str] = None
    ) -> PipelineResult:
        if stage is PipelineStage.GESTURE:
            kind = ErrorKind.GESTURE_STAGE_FAILURE
            status = PipelineStatus.FAILURE
        else:
            kind = ErrorKind.CORRECTION_STAGE_FAILURE
            status = PipelineStatus.PARTIAL_FAILURE

        message = f"{STAGE_LABELS[stage]} error: {error}"
        failure = Failure(kind=kind, message=message, cause=error)

        log.error(
            "pipeline_stage_failed",
            stage=stage.value,
            state=_State.FAILED.value,
            reason=error.reason.value,
            status_code=error.status_code,
            raw_text=raw_text
        )
        return PipelineResult(
            status=status,
            raw_text=raw_text,
            failed_stage=stage,
            failure=failure,
            message=message,
        )

    @staticmethod
    def _invalid_input(message: str) -> PipelineResult:
        logger.info("pipeline_rejected_input", reason=message)
        return PipelineResult(
            status=PipelineStatus.FAILURE,
            failure=Failure(kind=ErrorKind.INVALID_INPUT, message=message),
            message=message,
        )

    def close(self) -> None:
        self.gesture_caller.close()
        self.correction_caller.close()


# ============================================================================
# FACTORY
# ============================================================================

def create_inference_pipeline(settings: Optional[Settings] = None) -> InferencePipeline:
    """
    Build the pipeline from configuration.

    Args:
        settings: Optional settings override (defaults to global settings)

    Returns:
        Configured InferencePipeline
    """
    settings = settings or default_settings

    logger.info(
        "creating_inference_pipeline",
        gesture_url=settings.gesture_service_url,
        gesture_timeout_seconds=settings.gesture_timeout_seconds,
        correction_url=settings.correction_service_url,
        correction_timeout_seconds=settings.correction_timeout_seconds
    )

    return InferencePipeline(
        gesture_caller=ExternalCaller(
            service_name="gesture-recognition",
            base_url=settings.gesture_service_url,
            timeout_seconds=settings.gesture_timeout_seconds,
        ),
        correction_caller=ExternalCaller(
            service_name="accent-correction",
            base_url=settings.correction_service_url,
            timeout_seconds=settings.correction_timeout_seconds,
        ),
    )
