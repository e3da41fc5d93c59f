"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- A file-backed SQLite dictionary store
- An in-memory search index
- Synchronizers with fast backoff settings
- Stubbed inference services built on httpx.MockTransport
"""

from typing import Callable, Dict

import pytest

from vsl_platform.dictionary.database import (
    build_engine,
    create_all_tables,
    drop_all_tables,
    get_session_factory,
)
from vsl_platform.dictionary.store import DictionaryStore
from vsl_platform.dictionary.synchronizer import IndexSynchronizer
from vsl_platform.integration.inference_pipeline import InferencePipeline
from vsl_platform.models.dictionary import DictionaryEntry
from vsl_platform.models.pipeline import HandFrame, Landmark, PipelineRequest
from tests.fixtures.search_index import FakeSearchIndex
from tests.fixtures.services import StubService


# ============================================================================
# DICTIONARY STORE / INDEX
# ============================================================================

@pytest.fixture
def store(tmp_path) -> DictionaryStore:
    """Dictionary store on a fresh SQLite file (safe across worker threads)."""
    engine = build_engine(f"sqlite:///{tmp_path / 'dictionary.db'}")
    create_all_tables(engine)
    yield DictionaryStore(get_session_factory(engine))
    drop_all_tables(engine)
    engine.dispose()


@pytest.fixture
def fake_index() -> FakeSearchIndex:
    return FakeSearchIndex()


@pytest.fixture
def synchronizer(store, fake_index) -> IndexSynchronizer:
    """Synchronizer with millisecond backoff; stopped on teardown."""
    sync = IndexSynchronizer(
        store=store,
        index=fake_index,
        workers=2,
        queue_capacity=100,
        max_attempts=5,
        backoff_base_seconds=0.01,
        backoff_cap_seconds=0.05,
        reconciliation_interval_seconds=3600,
        poll_interval_seconds=0.02,
    )
    yield sync
    sync.stop(timeout=2.0)


@pytest.fixture
def make_entry() -> Callable[..., DictionaryEntry]:
    def _make(word: str = "cô giáo", definition: str = "Người dạy học", **overrides):
        media_ref = overrides.pop("media_ref", f"https://cdn.example.com/{word}.mp4")
        return DictionaryEntry(word=word, definition=definition, media_ref=media_ref, **overrides)
    return _make


# ============================================================================
# INFERENCE SERVICES
# ============================================================================

@pytest.fixture
def gesture_service() -> StubService:
    service = StubService("gesture-recognition")
    service.reply_json({"text": "coogiaso"})
    return service


@pytest.fixture
def correction_service() -> StubService:
    service = StubService("accent-correction")
    service.reply_json({"text": "cô giáo"})
    return service


@pytest.fixture
def pipeline(gesture_service, correction_service) -> InferencePipeline:
    return InferencePipeline(
        gesture_caller=gesture_service.caller(timeout_seconds=30.0),
        correction_caller=correction_service.caller(timeout_seconds=10.0),
    )


@pytest.fixture
def three_frames() -> PipelineRequest:
    """Three frames of 21 hand landmarks each."""
    frames = [
        HandFrame(landmarks=[Landmark(x=0.1 * i, y=0.04 * j, z=0.0) for j in range(21)])
        for i in range(3)
    ]
    return PipelineRequest(frames=frames)


@pytest.fixture
def frames_payload() -> Dict:
    """Wire-format gesture request body."""
    return {
        "frames": [
            {"landmarks": [{"x": 0.5, "y": 0.5, "z": 0.01} for _ in range(21)]}
            for _ in range(3)
        ],
        "currentText": "",
    }
