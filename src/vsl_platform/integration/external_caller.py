"""
Single outbound call with explicit timeout and structured error mapping.

Both the inference pipeline (HTTP services) and the search index adapter
(Elasticsearch client) go through this module so every external failure is
reported the same way: one ``ExternalCallError`` carrying a
``CallFailureReason``.

Key features:
- One request per call, never retried here
- Explicit per-call timeout
- JSON object payload validation
- Exception classification for httpx and elasticsearch errors
"""

import time
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, Optional

import elasticsearch
import httpx
import structlog


logger = structlog.get_logger(__name__)


# ============================================================================
# ERROR MODEL
# ============================================================================

class CallFailureReason(str, Enum):
    """Why an outbound call failed."""
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    MALFORMED_PAYLOAD = "malformed_payload"
    UNKNOWN = "unknown"


class ExternalCallError(Exception):
    """
    Raised for any failed outbound call.

    Attributes:
        service: Logical name of the called service
        reason: Classified failure reason
        status_code: HTTP status when the remote answered with an error
        cause: Original exception, if any
    """

    def __init__(
        self,
        service: str,
        reason: CallFailureReason,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.service = service
        self.reason = reason
        self.status_code = status_code
        self.cause = cause


def classify_call_error(exc: BaseException) -> CallFailureReason:
    """
    Classify an exception raised by an HTTP or Elasticsearch client.

    Timeouts are checked before connection errors because httpx and
    elastic-transport both model connect timeouts as transport errors.

    Args:
        exc: Exception raised during the call

    Returns:
        CallFailureReason for the exception
    """
    if isinstance(exc, ExternalCallError):
        return exc.reason

    if isinstance(exc, (httpx.TimeoutException, elasticsearch.ConnectionTimeout, TimeoutError)):
        return CallFailureReason.TIMEOUT

    if isinstance(exc, (httpx.HTTPStatusError, elasticsearch.ApiError)):
        return CallFailureReason.HTTP_STATUS

    if isinstance(exc, (httpx.TransportError, elasticsearch.ConnectionError, ConnectionError)):
        return CallFailureReason.CONNECTION

    if isinstance(exc, (ValueError, elasticsearch.SerializationError)):
        return CallFailureReason.MALFORMED_PAYLOAD

    return CallFailureReason.UNKNOWN


def _status_code_of(exc: BaseException) -> Optional[int]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    meta = getattr(exc, "meta", None)
    return getattr(meta, "status", None)


def describe_failure(
    service: str,
    reason: CallFailureReason,
    endpoint: str,
    timeout_seconds: float,
    status_code: Optional[int] = None,
    exc: Optional[BaseException] = None
) -> str:
    """Build the caller-facing message for a failed call."""
    if reason is CallFailureReason.CONNECTION:
        return f"{service} is unavailable at {endpoint}"
    if reason is CallFailureReason.TIMEOUT:
        return f"{service} did not answer within {timeout_seconds:g}s"
    if reason is CallFailureReason.HTTP_STATUS:
        return f"{service} returned error status {status_code}"
    if reason is CallFailureReason.MALFORMED_PAYLOAD:
        return f"{service} returned a malformed payload"
    return f"{service} call failed: {exc}"


@contextmanager
def guarded_call(
    service: str,
    operation: str,
    endpoint: str,
    timeout_seconds: float
) -> Iterator[None]:
    """
    Map any exception raised inside the block to ``ExternalCallError``.

    Usage:
        >>> with guarded_call("search-index", "index document", url, 5.0):
        ...     es.index(index="dictionary", id=1, document=doc)
    """
    try:
        yield
    except ExternalCallError:
        raise
    except Exception as e:
        reason = classify_call_error(e)
        status_code = _status_code_of(e)
        logger.warning(
            "external_call_failed",
            service=service,
            operation=operation,
            reason=reason.value,
            status_code=status_code,
            error=str(e),
            error_type=type(e).__name__
        )
        raise ExternalCallError(
            service=service,
            reason=reason,
            message=describe_failure(
                service, reason, endpoint, timeout_seconds, status_code, e
            ),
            status_code=status_code,
            cause=e,
        ) from e


# ============================================================================
# HTTP CALLER
# ============================================================================

class ExternalCaller:
    """
    Performs single outbound HTTP calls to one external service.

    The caller is stateless apart from its configuration and the underlying
    connection pool, so one instance may be shared across threads.
    """

    def __init__(
        self,
        service_name: str,
        base_url: str,
        timeout_seconds: float,
        client: Optional[httpx.Client] = None
    ):
        self.service_name = service_name
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=self.base_url,
            timeout=timeout_seconds
        )
        self.logger = logger.bind(service=service_name)

    def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON body and return the decoded JSON object.

        Raises:
            ExternalCallError: On connection failure, timeout, non-2xx status
                or a response that is not a JSON object
        """
        return self._send(path, json=payload)

    def post_multipart(
        self,
        path: str,
        files: Dict[str, Any],
        data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """POST a multipart form and return the decoded JSON object."""
        return self._send(path, files=files, data=data)

    def _send(self, path: str, **request_kwargs) -> Dict[str, Any]:
        start_time = time.time()

        with guarded_call(
            self.service_name, f"POST {path}", self.base_url, self.timeout_seconds
        ):
            response = self._client.post(
                path,
                timeout=self.timeout_seconds,
                **request_kwargs
            )
            response.raise_for_status()
            body = response.json()

        latency_ms = int((time.time() - start_time) * 1000)

        if not isinstance(body, dict):
            self.logger.warning(
                "external_call_malformed_payload",
                path=path,
                payload_type=type(body).__name__
            )
            raise ExternalCallError(
                service=self.service_name,
                reason=CallFailureReason.MALFORMED_PAYLOAD,
                message=f"{self.service_name} returned a non-object JSON payload",
            )

        self.logger.debug(
            "external_call_completed",
            path=path,
            status_code=response.status_code,
            latency_ms=latency_ms
        )
        return body

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
