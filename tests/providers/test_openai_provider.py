"""Tests for the OpenAI provider."""
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import cv2
import numpy as np
import pytest

from ai_failover.config import ProviderSettings
from ai_failover.errors import ProviderError, RateLimitedError
from ai_failover.providers import AnalysisType, ProviderID, ProviderStatus
from ai_failover.providers.openai_provider import (
    OpenAIProvider,
    extract_json_from_response,
    image_to_data_uri,
)


def completion(content: str):
    """Build a chat completion response shaped like the OpenAI SDK's."""
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


def make_client(*contents):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=[completion(c) for c in contents])
    return client


@pytest.fixture
def sharp_image():
    """Checkerboard PNG (very sharp, mid brightness)."""
    img = np.zeros((100, 100), dtype=np.uint8)
    for i in range(0, 100, 10):
        for j in range(0, 100, 10):
            if (i // 10 + j // 10) % 2 == 0:
                img[i:i+10, j:j+10] = 255
    ok, encoded = cv2.imencode(".png", img)
    assert ok
    return encoded.tobytes()


class TestExtractJsonFromResponse:
    """Tests for JSON extraction from model responses."""

    def test_raw_json(self):
        result = extract_json_from_response('{"tags": [], "confidence": 0.9}')
        assert result["confidence"] == 0.9

    def test_json_in_markdown_block(self):
        response = '''Here is the analysis:
```json
{"tags": [{"tag": "beach"}]}
```
'''
        result = extract_json_from_response(response)
        assert result["tags"][0]["tag"] == "beach"

    def test_json_with_surrounding_text(self):
        response = 'Result: {"confidence": 0.5, "tags": [{"tag": "dog"}]} hope this helps'
        assert extract_json_from_response(response)["tags"][0]["tag"] == "dog"

    def test_no_json_raises_error(self):
        with pytest.raises(ValueError, match="No JSON found"):
            extract_json_from_response("I cannot analyze this image.")


class TestImageToDataUri:
    def test_png_detected(self, sharp_image):
        uri = image_to_data_uri(sharp_image)
        assert uri.startswith("data:image/png;base64,")
        assert base64.b64decode(uri.split(",", 1)[1]) == sharp_image

    def test_defaults_to_jpeg(self, image_bytes):
        assert image_to_data_uri(image_bytes).startswith("data:image/jpeg;base64,")


class TestAnalyze:
    async def test_parses_tags(self, image_bytes):
        client = make_client(json.dumps({
            "tags": [
                {"tag": "beach", "confidence": 0.99, "category": "landscape"},
                {"tag": "  ", "confidence": 0.9},
                {"tag": "sunset", "confidence": 1.7},
            ],
            "confidence": 0.99,
        }))
        provider = OpenAIProvider(client, model="gpt-4o-mini")

        result = await provider.analyze(image_bytes, AnalysisType.SCENE)

        assert result.provider == ProviderID.OPENAI
        assert [t.tag for t in result.tags] == ["beach", "sunset"]
        assert result.tags[1].confidence == 1.0
        assert result.tags[1].category == "scene"
        assert result.confidence == 0.99
        assert result.metadata == {"model": "gpt-4o-mini", "analysis_type": "scene"}

    async def test_sends_image_and_prompt(self, image_bytes):
        client = make_client('{"tags": [{"tag": "text"}]}')
        provider = OpenAIProvider(client)

        await provider.analyze(image_bytes, AnalysisType.TEXT)

        kwargs = client.chat.completions.create.call_args.kwargs
        content = kwargs["messages"][0]["content"]
        assert kwargs["model"] == "gpt-4o"
        assert "visible text" in content[0]["text"]
        assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    async def test_confidence_falls_back_to_tag_mean(self, image_bytes):
        client = make_client('{"tags": [{"tag": "a", "confidence": 0.8}, {"tag": "b", "confidence": 1.0}]}')
        result = await OpenAIProvider(client).analyze(image_bytes, AnalysisType.OBJECT)
        assert result.confidence == pytest.approx(0.9)

    async def test_unparseable_reply_is_provider_error(self, image_bytes):
        provider = OpenAIProvider(make_client("Sorry, I can't help with that."))

        with pytest.raises(ProviderError, match="Parse error"):
            await provider.analyze(image_bytes, AnalysisType.SCENE)

        assert provider.telemetry.snapshot().error_count == 1

    async def test_sdk_rate_limit_is_mapped(self, image_bytes):
        class RateLimitError(Exception):
            status_code = 429

        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RateLimitError("quota"))
        provider = OpenAIProvider(client)

        with pytest.raises(RateLimitedError):
            await provider.analyze(image_bytes, AnalysisType.SCENE)


class TestDetectFaces:
    async def test_parses_faces(self, sharp_image):
        client = make_client(json.dumps({
            "faces": [
                {
                    "box": {"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.4},
                    "confidence": 0.99,
                    "landmarks": [{"type": "nose", "x": 0.25, "y": 0.4}],
                    "attributes": {"emotion": "happy"},
                },
                "not a face",
            ],
            "confidence": 0.99,
        }))
        provider = OpenAIProvider(client, min_confidence=0.95)

        result = await provider.detect_faces(sharp_image)

        assert len(result.faces) == 1
        face = result.faces[0]
        assert face.bounding_box.width == 0.3
        assert face.landmarks[0].type == "nose"
        assert face.attributes == {"emotion": "happy"}
        assert result.confidence_threshold == 0.95
        assert result.detection_conditions.quality == "high"
        assert result.detection_conditions.angle == "unknown"

    async def test_flat_image_is_poor_quality(self, image_bytes):
        client = make_client('{"faces": [{"box": {}, "confidence": 0.99}], "confidence": 0.99}')

        result = await OpenAIProvider(client).detect_faces(image_bytes)

        assert result.detection_conditions.quality == "poor"


class TestStatus:
    async def test_without_client_is_unavailable(self):
        assert await OpenAIProvider(None).get_status() == ProviderStatus.UNAVAILABLE

    async def test_with_client_is_available(self):
        assert await OpenAIProvider(MagicMock()).get_status() == ProviderStatus.AVAILABLE

    async def test_local_rate_limit(self, image_bytes):
        client = make_client('{"tags": [{"tag": "a"}], "confidence": 1}')
        provider = OpenAIProvider(client, settings=ProviderSettings(max_requests=1))

        await provider.analyze(image_bytes, AnalysisType.SCENE)
        with pytest.raises(RateLimitedError):
            await provider.analyze(image_bytes, AnalysisType.SCENE)

        assert await provider.get_status() == ProviderStatus.RATE_LIMITED
        assert client.chat.completions.create.await_count == 1
