"""
Integration tests for the health and version endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from vsl_platform.api.app import app
from vsl_platform.version import API_VERSION, PIPELINE_VERSION, SYNC_PROTOCOL_VERSION


@pytest.fixture
def client():
    """Create test client for FastAPI app."""
    return TestClient(app)


class TestHealthEndpoint:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == API_VERSION
        assert body["uptime_seconds"] >= 0

    def test_without_synchronizer(self, client):
        body = client.get("/health").json()

        assert body["search_index"] == "unknown"
        assert body["sync_workers_alive"] == 0

    def test_index_down_is_degraded(self, client, synchronizer, fake_index):
        app.state.synchronizer = synchronizer
        try:
            assert client.get("/health").json()["search_index"] == "up"

            fake_index.available = False
            body = client.get("/health").json()
        finally:
            del app.state.synchronizer

        assert body["status"] == "degraded"
        assert body["search_index"] == "down"

    def test_response_headers(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert "X-Process-Time" in response.headers
        assert response.headers["X-Request-ID"] == "req-42"


class TestVersionEndpoint:

    def test_version(self, client):
        response = client.get("/api/v1/version")

        assert response.status_code == 200
        body = response.json()
        assert body["api_version"] == API_VERSION
        assert body["components"]["pipeline_version"] == PIPELINE_VERSION
        assert body["components"]["sync_protocol_version"] == SYNC_PROTOCOL_VERSION
