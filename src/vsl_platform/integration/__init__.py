"""
Integration package for the external inference services.

Main components:
- external_caller: single outbound call with timeout and error classification
- inference_pipeline: gesture recognition -> accent correction orchestration
"""

from vsl_platform.integration.external_caller import (
    CallFailureReason,
    ExternalCallError,
    ExternalCaller,
    classify_call_error,
    guarded_call,
)
from vsl_platform.integration.inference_pipeline import (
    InferencePipeline,
    create_inference_pipeline,
)

__all__ = [
    "CallFailureReason",
    "ExternalCallError",
    "ExternalCaller",
    "classify_call_error",
    "guarded_call",
    "InferencePipeline",
    "create_inference_pipeline",
]
