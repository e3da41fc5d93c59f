"""
Version constants for the inference pipeline and index synchronizer.

Bump the relevant constant whenever an external contract or the index mapping
changes, so logs and the version endpoint stay traceable.
"""

from .models.component_versions import ComponentVersions

# API Version
API_VERSION = "1.0.0"

# Component versions (update these when implementations change)
PIPELINE_VERSION = "pipeline-1.0.0"
GESTURE_CONTRACT_VERSION = "predict-gesture-v1"
CORRECTION_CONTRACT_VERSION = "add-accents-v1"
INDEX_MAPPING_VERSION = "dictionary-mapping-1"
SYNC_PROTOCOL_VERSION = "sync-1.0.0"


def get_component_versions() -> ComponentVersions:
    """
    Get current component version configuration.

    Returns:
        ComponentVersions instance with current versions
    """
    return ComponentVersions(
        pipeline_version=PIPELINE_VERSION,
        gesture_contract_version=GESTURE_CONTRACT_VERSION,
        correction_contract_version=CORRECTION_CONTRACT_VERSION,
        index_mapping_version=INDEX_MAPPING_VERSION,
        sync_protocol_version=SYNC_PROTOCOL_VERSION,
    )
