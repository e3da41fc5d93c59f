"""
Unit tests for the outbound call wrapper.

Tests exception classification for httpx and elasticsearch errors, the
caller's JSON object validation, and the guarded_call context manager.
"""

from unittest.mock import Mock

import elasticsearch
import httpx
import pytest

from vsl_platform.integration.external_caller import (
    CallFailureReason,
    ExternalCallError,
    classify_call_error,
    guarded_call,
)
from tests.fixtures.services import StubService


REQUEST = httpx.Request("POST", "http://gesture.test/predict-gesture")


class TestClassifyCallError:
    """Test exception classification."""

    @pytest.mark.parametrize("exc", [
        httpx.ReadTimeout("read timed out", request=REQUEST),
        httpx.ConnectTimeout("connect timed out", request=REQUEST),
        elasticsearch.ConnectionTimeout("es timed out"),
        TimeoutError("socket timeout"),
    ])
    def test_timeouts(self, exc):
        """Timeouts win over the connection errors they subclass."""
        assert classify_call_error(exc) is CallFailureReason.TIMEOUT

    @pytest.mark.parametrize("exc", [
        httpx.ConnectError("connection refused", request=REQUEST),
        elasticsearch.ConnectionError("cluster down"),
        ConnectionRefusedError("refused"),
    ])
    def test_connection_errors(self, exc):
        assert classify_call_error(exc) is CallFailureReason.CONNECTION

    def test_http_status_errors(self):
        response = httpx.Response(502, request=REQUEST)
        exc = httpx.HTTPStatusError("bad gateway", request=REQUEST, response=response)

        assert classify_call_error(exc) is CallFailureReason.HTTP_STATUS

    def test_elasticsearch_api_error_is_http_status(self):
        exc = elasticsearch.ApiError("index closed", meta=Mock(status=503), body={})

        assert classify_call_error(exc) is CallFailureReason.HTTP_STATUS

    def test_value_error_is_malformed_payload(self):
        assert classify_call_error(ValueError("Expecting value")) is CallFailureReason.MALFORMED_PAYLOAD

    def test_unknown(self):
        assert classify_call_error(RuntimeError("boom")) is CallFailureReason.UNKNOWN

    def test_existing_call_error_keeps_reason(self):
        exc = ExternalCallError("gesture", CallFailureReason.TIMEOUT, "slow")

        assert classify_call_error(exc) is CallFailureReason.TIMEOUT


class TestGuardedCall:
    """Test the guarded_call context manager."""

    def test_wraps_exception_with_cause(self):
        original = elasticsearch.ConnectionError("cluster down")

        with pytest.raises(ExternalCallError) as exc_info:
            with guarded_call("search-index", "search", "http://es:9200", 5.0):
                raise original

        error = exc_info.value
        assert error.service == "search-index"
        assert error.reason is CallFailureReason.CONNECTION
        assert error.cause is original
        assert str(error) == "search-index is unavailable at http://es:9200"

    def test_timeout_message_names_the_limit(self):
        with pytest.raises(ExternalCallError) as exc_info:
            with guarded_call("accent-correction", "POST /add-accents", "http://c", 10.0):
                raise httpx.ReadTimeout("timed out", request=REQUEST)

        assert str(exc_info.value) == "accent-correction did not answer within 10s"

    def test_passes_through_without_error(self):
        with guarded_call("search-index", "ping", "http://es:9200", 5.0):
            value = 1 + 1

        assert value == 2


class TestExternalCaller:
    """Test ExternalCaller over a mocked transport."""

    def test_post_json_returns_object(self):
        service = StubService("gesture-recognition")
        service.reply_json({"text": "xin chao"})

        body = service.caller().post_json("/predict-gesture", {"frames": []})

        assert body == {"text": "xin chao"}
        assert service.calls == 1
        assert service.requests[0].url.path == "/predict-gesture"

    def test_error_status_carries_status_code(self):
        service = StubService("gesture-recognition")
        service.reply_json({"detail": "model crashed"}, status_code=500)

        with pytest.raises(ExternalCallError) as exc_info:
            service.caller().post_json("/predict-gesture", {})

        assert exc_info.value.reason is CallFailureReason.HTTP_STATUS
        assert exc_info.value.status_code == 500
        assert "500" in str(exc_info.value)

    def test_non_json_body_is_malformed(self):
        service = StubService("gesture-recognition")
        service.reply_raw(b"<html>oops</html>")

        with pytest.raises(ExternalCallError) as exc_info:
            service.caller().post_json("/predict-gesture", {})

        assert exc_info.value.reason is CallFailureReason.MALFORMED_PAYLOAD

    def test_non_object_json_is_malformed(self):
        service = StubService("gesture-recognition")
        service.reply_json(["not", "an", "object"])

        with pytest.raises(ExternalCallError) as exc_info:
            service.caller().post_json("/predict-gesture", {})

        assert exc_info.value.reason is CallFailureReason.MALFORMED_PAYLOAD
        assert exc_info.value.status_code is None

    def test_connection_refused(self):
        service = StubService("accent-correction")
        service.fail_with(lambda request: httpx.ConnectError("refused", request=request))

        with pytest.raises(ExternalCallError) as exc_info:
            service.caller().post_json("/add-accents", {"text": "a"})

        assert exc_info.value.reason is CallFailureReason.CONNECTION
        assert service.calls == 1

    def test_close_leaves_injected_client_open(self):
        service = StubService("accent-correction")
        caller = service.caller()

        caller.close()

        assert caller._client.is_closed is False
