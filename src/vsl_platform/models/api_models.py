"""
API request and response models for FastAPI endpoints.

This module defines the Pydantic models used for API request/response validation.
Caller-facing payloads use camelCase field names.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .component_versions import ComponentVersions
from .dictionary import DictionaryEntry
from .pipeline import PipelineResult

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard response envelope."""

    success: bool = Field(description="Whether the request succeeded")
    message: str = Field(default="", description="Human-readable outcome")
    data: Optional[T] = Field(default=None, description="Response payload")

    @classmethod
    def ok(cls, message: str, data: Optional[T] = None) -> "ApiResponse[T]":
        return cls(success=True, message=message, data=data)

    @classmethod
    def error(cls, message: str, data: Optional[T] = None) -> "ApiResponse[T]":
        return cls(success=False, message=message, data=data)


class GestureResult(BaseModel):
    """Caller-facing pipeline outcome."""

    raw_text: Optional[str] = None
    corrected_text: Optional[str] = None
    status: str
    failed_stage: Optional[str] = None
    message: str = ""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_result(cls, result: PipelineResult) -> "GestureResult":
        return cls(
            raw_text=result.raw_text,
            corrected_text=result.corrected_text,
            status=result.status.value,
            failed_stage=result.failed_stage.value if result.failed_stage else None,
            message=result.message,
        )


class DictionaryItem(BaseModel):
    """Caller-facing dictionary entry."""

    id: int
    word: str
    definition: str
    media_ref: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_entry(cls, entry: DictionaryEntry) -> "DictionaryItem":
        return cls(
            id=entry.id,
            word=entry.word,
            definition=entry.definition,
            media_ref=entry.media_ref,
        )


class DictionaryWriteRequest(BaseModel):
    """Create (no id) or update (with id) a dictionary entry."""

    id: Optional[int] = None
    word: str = Field(min_length=1, max_length=100)
    definition: str = ""
    media_ref: str = Field(min_length=1, description="Gesture video URL")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_entry(self) -> DictionaryEntry:
        return DictionaryEntry(
            id=self.id,
            word=self.word,
            definition=self.definition,
            media_ref=self.media_ref,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["healthy"])
    version: str = Field(description="API version", examples=["1.0.0"])
    uptime_seconds: float = Field(description="Service uptime")
    search_index: str = Field(description="Search index reachability", examples=["up", "down"])
    sync_workers_alive: int = Field(description="Running sync worker threads")


class VersionResponse(BaseModel):
    """Version information response."""

    api_version: str = Field(description="API version")
    components: ComponentVersions = Field(description="Current component versions")


__all__ = [
    "ApiResponse",
    "GestureResult",
    "DictionaryItem",
    "DictionaryWriteRequest",
    "HealthResponse",
    "VersionResponse",
]
