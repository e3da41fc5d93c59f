# Data models for the inference pipeline and dictionary synchronization

from .component_versions import ComponentVersions
from .dictionary import DictionaryEntry
from .pipeline import (
    HandFrame,
    Landmark,
    PipelineRequest,
    PipelineResult,
    PipelineStage,
    PipelineStatus,
)
from .api_models import (
    ApiResponse,
    DictionaryItem,
    DictionaryWriteRequest,
    GestureResult,
    HealthResponse,
    VersionResponse,
)

__all__ = [
    "ComponentVersions",
    "DictionaryEntry",
    "HandFrame",
    "Landmark",
    "PipelineRequest",
    "PipelineResult",
    "PipelineStage",
    "PipelineStatus",
    "ApiResponse",
    "DictionaryItem",
    "DictionaryWriteRequest",
    "GestureResult",
    "HealthResponse",
    "VersionResponse",
]
