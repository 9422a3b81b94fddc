"""Tests for the HTTP routes."""
import pytest
from fastapi.testclient import TestClient

from ai_failover.errors import ProviderError
from ai_failover.main import create_app
from ai_failover.providers import ProviderID, ProviderStatus


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as client:
        yield client


def upload(image_bytes, filename="photo.jpg"):
    return {"image": (filename, image_bytes, "image/jpeg")}


class TestAnalyze:
    def test_analyze_success(self, client, image_bytes):
        response = client.post(
            "/analyze", files=upload(image_bytes), data={"analysis_type": "object"}
        )

        data = response.json()
        assert response.status_code == 200
        assert data["success"] is True
        assert data["data"]["provider"] == "openai"
        assert data["data"]["analysis_type"] == "object"
        assert data["data"]["tags"]

    def test_defaults_to_scene(self, client, image_bytes):
        data = client.post("/analyze", files=upload(image_bytes)).json()
        assert data["data"]["analysis_type"] == "scene"

    def test_failover_is_invisible(self, client, providers, image_bytes):
        """The caller just gets the next provider's result."""
        providers[ProviderID.OPENAI].results = [ProviderError(ProviderID.OPENAI, "boom")]

        data = client.post("/analyze", files=upload(image_bytes)).json()

        assert data["success"] is True
        assert data["data"]["provider"] == "aws"

    def test_unknown_analysis_type(self, client, image_bytes):
        data = client.post(
            "/analyze", files=upload(image_bytes), data={"analysis_type": "colour"}
        ).json()

        assert data["success"] is False
        assert data["meta"]["error_code"] == "VALIDATION_ERROR"

    def test_unsupported_extension(self, client, image_bytes):
        data = client.post("/analyze", files=upload(image_bytes, "notes.txt")).json()
        assert data["meta"]["error_code"] == "UNSUPPORTED_FORMAT"

    def test_not_an_image(self, client):
        data = client.post("/analyze", files=upload(b"plain text", "photo.jpg")).json()
        assert data["meta"]["error_code"] == "UNSUPPORTED_FORMAT"

    def test_empty_upload(self, client):
        data = client.post("/analyze", files=upload(b"", "photo.jpg")).json()
        assert data["meta"]["error_code"] == "VALIDATION_ERROR"

    def test_no_providers(self, client, providers, image_bytes):
        for adapter in providers.values():
            adapter.status = ProviderStatus.UNAVAILABLE

        data = client.post("/analyze", files=upload(image_bytes)).json()

        assert data["success"] is False
        assert data["meta"]["error_code"] == "NO_PROVIDERS_AVAILABLE"

    def test_all_failed(self, client, providers, image_bytes):
        for provider_id, adapter in providers.items():
            adapter.results = [ProviderError(provider_id, "boom")]

        data = client.post("/analyze", files=upload(image_bytes)).json()

        assert data["meta"]["error_code"] == "ALL_PROVIDERS_FAILED"


class TestDetectFaces:
    def test_detect_faces(self, client, image_bytes):
        data = client.post("/detect-faces", files=upload(image_bytes)).json()

        assert data["success"] is True
        assert data["data"]["provider"] == "openai"
        assert len(data["data"]["faces"]) == 1
        assert data["data"]["detection_conditions"]["quality"] == "high"


class TestProviders:
    def test_status(self, client, providers):
        providers[ProviderID.AWS].status = ProviderStatus.RATE_LIMITED

        data = client.get("/providers/status").json()

        assert data["data"]["providers"] == {
            "openai": "available",
            "aws": "rate_limited",
            "google": "available",
        }
        assert data["data"]["available"] == ["openai", "google"]

    def test_metrics(self, client, providers, image_bytes):
        providers[ProviderID.OPENAI].results = [ProviderError(ProviderID.OPENAI, "boom")]
        client.post("/analyze", files=upload(image_bytes))

        data = client.get("/providers/metrics").json()["data"]

        assert data["requests"] == 1
        assert data["outcomes"] == {"success": 1}
        assert data["providers"]["openai"]["error_count"] == 1
        assert data["providers"]["aws"]["usage_count"] == 1
