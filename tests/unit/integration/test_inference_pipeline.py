"""
Unit tests for the two-stage inference pipeline.

Both inference services are replaced by httpx.MockTransport stubs, so these
tests exercise the real HTTP caller, payload validation and stage
attribution without a network.
"""

import json

import httpx
import pytest

from vsl_platform.config import Settings
from vsl_platform.errors import ErrorKind
from vsl_platform.integration.inference_pipeline import (
    CORRECTION_PATH,
    GESTURE_PATH,
    create_inference_pipeline,
    extract_text,
)
from vsl_platform.integration.external_caller import CallFailureReason, ExternalCallError
from vsl_platform.models.pipeline import PipelineRequest, PipelineStage, PipelineStatus


def _json_body(request: httpx.Request) -> dict:
    return json.loads(request.content)


class TestExtractText:
    """Test response text extraction."""

    def test_trims_text(self):
        assert extract_text({"text": "  cô giáo \n"}, "svc") == "cô giáo"

    @pytest.mark.parametrize("payload", [{}, {"text": ""}, {"text": "   "}, {"text": 42}])
    def test_rejects_missing_or_blank(self, payload):
        with pytest.raises(ExternalCallError) as exc_info:
            extract_text(payload, "gesture-recognition")

        assert exc_info.value.reason is CallFailureReason.MALFORMED_PAYLOAD


class TestProcessSuccess:
    """Test the happy path through both stages."""

    def test_two_stage_success(self, pipeline, gesture_service, correction_service, three_frames):
        """Raw text from stage 1 is corrected by stage 2."""
        result = pipeline.process(three_frames)

        assert result.status is PipelineStatus.SUCCESS
        assert result.ok
        assert result.raw_text == "coogiaso"
        assert result.corrected_text == "cô giáo"
        assert result.failure is None
        assert result.failed_stage is None

        assert gesture_service.calls == 1
        assert correction_service.calls == 1

    def test_gesture_request_carries_frames(self, pipeline, gesture_service, three_frames):
        pipeline.process(three_frames)

        request = gesture_service.requests[0]
        assert request.url.path == GESTURE_PATH
        frames = _json_body(request)["frames"]
        assert len(frames) == 3
        assert len(frames[0]["landmarks"]) == 21
        assert set(frames[0]["landmarks"][0]) == {"x", "y", "z"}

    def test_correction_receives_raw_text_only_without_context(
        self, pipeline, correction_service, three_frames
    ):
        pipeline.process(three_frames)

        request = correction_service.requests[0]
        assert request.url.path == CORRECTION_PATH
        assert _json_body(request) == {"text": "coogiaso"}

    def test_current_text_forwarded_to_correction(
        self, pipeline, correction_service, three_frames
    ):
        request = three_frames.model_copy(update={"current_text": "xin chào"})

        pipeline.process(request)

        assert _json_body(correction_service.requests[0]) == {
            "text": "coogiaso",
            "current_text": "xin chào",
        }

    def test_outputs_are_trimmed(self, pipeline, gesture_service, correction_service, three_frames):
        gesture_service.reply_json({"text": "  coogiaso  "})
        correction_service.reply_json({"text": "\tcô giáo "})

        result = pipeline.process(three_frames)

        assert result.raw_text == "coogiaso"
        assert result.corrected_text == "cô giáo"
        assert _json_body(correction_service.requests[0])["text"] == "coogiaso"


class TestGestureStageFailure:
    """A stage 1 failure never reaches stage 2."""

    @pytest.mark.parametrize("configure, reason_text", [
        (
            lambda s: s.fail_with(lambda r: httpx.ReadTimeout("timed out", request=r)),
            "did not answer within 30s",
        ),
        (
            lambda s: s.fail_with(lambda r: httpx.ConnectError("refused", request=r)),
            "is unavailable",
        ),
        (
            lambda s: s.reply_json({"detail": "boom"}, status_code=500),
            "error status 500",
        ),
        (
            lambda s: s.reply_json({"text": "   "}),
            "empty or invalid text",
        ),
        (
            lambda s: s.reply_raw(b"not json"),
            "malformed payload",
        ),
    ])
    def test_gesture_failure_is_attributed(
        self, pipeline, gesture_service, correction_service, three_frames,
        configure, reason_text
    ):
        configure(gesture_service)

        result = pipeline.process(three_frames)

        assert result.status is PipelineStatus.FAILURE
        assert result.failed_stage is PipelineStage.GESTURE
        assert result.failure.kind is ErrorKind.GESTURE_STAGE_FAILURE
        assert result.raw_text is None
        assert result.corrected_text is None
        assert result.message.startswith("Gesture Recognition Model error:")
        assert reason_text in result.message
        assert correction_service.calls == 0


class TestCorrectionStageFailure:
    """A stage 2 failure keeps the raw text."""

    def test_correction_timeout_keeps_raw_text(
        self, pipeline, correction_service, three_frames
    ):
        correction_service.fail_with(lambda r: httpx.ReadTimeout("timed out", request=r))

        result = pipeline.process(three_frames)

        assert result.status is PipelineStatus.PARTIAL_FAILURE
        assert result.failed_stage is PipelineStage.CORRECTION
        assert result.failure.kind is ErrorKind.CORRECTION_STAGE_FAILURE
        assert result.raw_text == "coogiaso"
        assert result.corrected_text is None
        assert result.message == (
            "Accent Correction Model error: accent-correction did not answer within 10s"
        )

    def test_correction_error_status(self, pipeline, correction_service, three_frames):
        correction_service.reply_json({"detail": "unavailable"}, status_code=503)

        result = pipeline.process(three_frames)

        assert result.status is PipelineStatus.PARTIAL_FAILURE
        assert result.raw_text == "coogiaso"
        assert isinstance(result.failure.cause, ExternalCallError)
        assert result.failure.cause.status_code == 503

    @pytest.mark.parametrize("body", [{"text": ""}, {"text": "   "}, {}])
    def test_blank_correction_text_is_correction_failure(
        self, pipeline, correction_service, three_frames, body
    ):
        correction_service.reply_json(body)

        result = pipeline.process(three_frames)

        assert result.status is PipelineStatus.PARTIAL_FAILURE
        assert result.failed_stage is PipelineStage.CORRECTION
        assert result.failure.kind is ErrorKind.CORRECTION_STAGE_FAILURE
        assert result.raw_text == "coogiaso"
        assert result.corrected_text is None
        assert result.failure.cause.reason is CallFailureReason.MALFORMED_PAYLOAD


class TestInvalidInput:
    """Invalid input is rejected before any external call."""

    def test_empty_frames(self, pipeline, gesture_service, correction_service):
        result = pipeline.process(PipelineRequest(frames=[]))

        assert result.status is PipelineStatus.FAILURE
        assert result.failure.kind is ErrorKind.INVALID_INPUT
        assert result.failure.is_client_error
        assert result.message == "Frames cannot be empty"
        assert result.failed_stage is None
        assert gesture_service.calls == 0
        assert correction_service.calls == 0

    def test_empty_video(self, pipeline, gesture_service):
        result = pipeline.process_video(b"")

        assert result.failure.kind is ErrorKind.INVALID_INPUT
        assert result.message == "Video file is required"
        assert gesture_service.calls == 0


class TestProcessVideo:
    """Test the video upload variant."""

    def test_video_sent_as_multipart_file(self, pipeline, gesture_service, correction_service):
        result = pipeline.process_video(
            b"\x00\x00\x00\x18ftypmp42", filename="clip.mp4", current_text="xin"
        )

        assert result.ok
        assert result.corrected_text == "cô giáo"

        request = gesture_service.requests[0]
        assert request.url.path == GESTURE_PATH
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="file"' in request.content
        assert b'filename="clip.mp4"' in request.content

        assert _json_body(correction_service.requests[0]) == {
            "text": "coogiaso",
            "current_text": "xin",
        }


class TestFactory:
    """Test pipeline construction from settings."""

    def test_timeouts_from_settings(self):
        settings = Settings(
            gesture_service_url="http://gesture:5000/",
            correction_service_url="http://correction:5001",
        )

        pipeline = create_inference_pipeline(settings)
        try:
            assert pipeline.gesture_caller.timeout_seconds == 30.0
            assert pipeline.correction_caller.timeout_seconds == 10.0
            assert pipeline.gesture_caller.base_url == "http://gesture:5000"
            assert pipeline.gesture_caller.service_name == "gesture-recognition"
            assert pipeline.correction_caller.service_name == "accent-correction"
        finally:
            pipeline.close()
