"""
Data models for the gesture-to-text inference pipeline.

Requests are Pydantic models (they arrive over HTTP); results are plain
dataclasses because they carry a ``Failure`` value with the original exception.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..errors import Failure


class Landmark(BaseModel):
    """One 3D hand landmark point."""
    x: float
    y: float
    z: float


class HandFrame(BaseModel):
    """Landmarks captured for a single video frame."""
    landmarks: List[Landmark] = Field(default_factory=list)


class PipelineRequest(BaseModel):
    """
    Gesture input: ordered frames plus the text accumulated so far.

    ``current_text`` is accepted as ``currentText`` on the wire.
    """
    frames: List[HandFrame] = Field(default_factory=list)
    current_text: str = Field(default="", description="Accumulated text context")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PipelineStatus(str, Enum):
    """Outcome of one ``process`` call."""
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"  # stage 1 ok, stage 2 failed
    FAILURE = "failure"


class PipelineStage(str, Enum):
    """External stage a failure is attributed to."""
    GESTURE = "gesture"
    CORRECTION = "correction"


@dataclass(frozen=True)
class PipelineResult:
    """Result of a pipeline run; ``raw_text`` survives a stage 2 failure."""
    status: PipelineStatus
    raw_text: Optional[str] = None
    corrected_text: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None
    failure: Optional[Failure] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is PipelineStatus.SUCCESS
