"""
Component version model for the inference and synchronization core.

Tracks which versions of the external contracts and the index layout a running
service was built against, for audit and debugging.
"""

from pydantic import BaseModel, Field


class ComponentVersions(BaseModel):
    """
    Immutable version contract reported by the version endpoint.
    """

    pipeline_version: str = Field(
        description="Two-stage inference pipeline version", examples=["pipeline-1.0.0"]
    )
    gesture_contract_version: str = Field(
        description="Gesture recognition service request/response contract",
        examples=["predict-gesture-v1"],
    )
    correction_contract_version: str = Field(
        description="Accent correction service request/response contract",
        examples=["add-accents-v1"],
    )
    index_mapping_version: str = Field(
        description="Search index mapping and analyzer version",
        examples=["dictionary-mapping-1"],
    )
    sync_protocol_version: str = Field(
        description="Synced-flag / queue / sweep protocol version",
        examples=["sync-1.0.0"],
    )

    model_config = {
        "frozen": True,
    }
