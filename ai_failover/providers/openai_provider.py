"""OpenAI vision provider.

Talks to any client shaped like `openai.AsyncOpenAI` (only
`client.chat.completions.create(...)` is used). The model is asked for
JSON only; the reply is parsed with the same tolerant extraction used for
local models, so fenced or chatty answers still work.

OpenAI does not report capture conditions for faces, so those are
estimated locally from the image itself.
"""
import base64
import json
import re

import structlog

from ..config import ErrorThresholds, ProviderSettings
from ..errors import ProviderError
from ..utils.image import assess_image_quality
from .base import (
    AnalysisResult,
    AnalysisType,
    BoundingBox,
    Face,
    FaceDetectionResult,
    Landmark,
    ProviderID,
    Tag,
)
from .vendor import VendorAdapter

logger = structlog.get_logger()

DEFAULT_VISION_MODEL = "gpt-4o"

ANALYSIS_PROMPT = """Analyze this image for {focus}. Respond with JSON only.

JSON format:
{{
  "tags": [{{"tag": "<label>", "confidence": <0.0-1.0>, "category": "<category>"}}],
  "confidence": <overall 0.0-1.0>
}}

JSON only, no other text:"""

FACE_PROMPT = """Detect every human face in this image. Respond with JSON only.

Coordinates are fractions of image width/height (0.0-1.0).

JSON format:
{
  "faces": [
    {
      "box": {"x": <left>, "y": <top>, "width": <w>, "height": <h>},
      "confidence": <0.0-1.0>,
      "landmarks": [{"type": "<left_eye|right_eye|nose|mouth>", "x": <x>, "y": <y>}],
      "attributes": {"emotion": "<emotion>", "age_range": "<range>"}
    }
  ],
  "confidence": <overall 0.0-1.0>
}

JSON only, no other text:"""

ANALYSIS_FOCUS = {
    AnalysisType.SCENE: "the overall scene and setting",
    AnalysisType.OBJECT: "the distinct objects present",
    AnalysisType.TEXT: "any visible text (one tag per text block)",
    AnalysisType.SENTIMENT: "the mood and emotional tone",
    AnalysisType.FACE: "people and faces",
}


def extract_json_from_response(response: str) -> dict:
    """Extract JSON object from model output."""
    # Try to find JSON in markdown code block
    json_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", response, re.DOTALL)
    if json_match:
        return json.loads(json_match.group(1))

    # Otherwise take the outermost braces
    start = response.find("{")
    end = response.rfind("}")
    if start != -1 and end > start:
        return json.loads(response[start : end + 1])

    raise ValueError(f"No JSON found in response: {response[:200]}")


def image_to_data_uri(image: bytes) -> str:
    """Encode image bytes as a data URI, sniffing PNG vs JPEG."""
    mime = "image/png" if image.startswith(b"\x89PNG") else "image/jpeg"
    return f"data:{mime};base64,{base64.b64encode(image).decode('ascii')}"


def _clamp(value, default: float = 0.0) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


def _overall_confidence(parsed: dict, items: list) -> float:
    if "confidence" in parsed:
        return _clamp(parsed["confidence"])
    if not items:
        return 0.0
    return sum(item.confidence for item in items) / len(items)


class OpenAIProvider(VendorAdapter):
    """OpenAI vision models via chat completions."""

    provider_id = ProviderID.OPENAI

    def __init__(
        self,
        client,
        model: str = DEFAULT_VISION_MODEL,
        settings: ProviderSettings | None = None,
        thresholds: ErrorThresholds | None = None,
        min_confidence: float = 0.98,
    ):
        """Initialize the provider.

        Args:
            client: AsyncOpenAI-compatible client (None = not configured).
            model: Vision-capable chat model name.
            settings: Timeouts and rate limits for this vendor.
            thresholds: When this provider reports itself degraded.
            min_confidence: Stamped on face results as their threshold.
        """
        super().__init__(settings, thresholds, min_confidence)
        self.client = client
        self.model = model

    def has_credentials(self) -> bool:
        return self.client is not None

    async def _complete(self, image: bytes, prompt: str, max_tokens: int) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_to_data_uri(image)}},
                    ],
                }
            ],
            max_tokens=max_tokens,
        )
        content = response.choices[0].message.content or ""
        logger.debug("openai_response", response=content[:200])
        return content

    def _parse(self, content: str, operation: str) -> dict:
        try:
            return extract_json_from_response(content)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("openai_parse_error", error=str(e), response=content[:200])
            raise ProviderError(self.provider_id, f"Parse error: {e}", operation) from e

    async def _analyze(
        self, image: bytes, analysis_type: AnalysisType, started: float
    ) -> AnalysisResult:
        prompt = ANALYSIS_PROMPT.format(focus=ANALYSIS_FOCUS[analysis_type])
        parsed = self._parse(await self._complete(image, prompt, 300), "analyze")

        tags = [
            Tag(
                tag=str(item.get("tag", "")).strip(),
                confidence=_clamp(item.get("confidence")),
                category=str(item.get("category") or analysis_type.value),
            )
            for item in parsed.get("tags", [])
            if isinstance(item, dict) and str(item.get("tag", "")).strip()
        ]
        return AnalysisResult(
            provider=self.provider_id,
            tags=tags,
            confidence=_overall_confidence(parsed, tags),
            processing_time_ms=self.elapsed_ms(started),
            metadata={"model": self.model, "analysis_type": analysis_type.value},
        )

    async def _detect_faces(self, image: bytes, started: float) -> FaceDetectionResult:
        parsed = self._parse(await self._complete(image, FACE_PROMPT, 500), "detect_faces")

        faces = []
        for item in parsed.get("faces", []):
            if not isinstance(item, dict):
                continue
            box = item.get("box") or {}
            faces.append(
                Face(
                    bounding_box=BoundingBox(
                        x=_clamp(box.get("x")),
                        y=_clamp(box.get("y")),
                        width=_clamp(box.get("width")),
                        height=_clamp(box.get("height")),
                    ),
                    confidence=_clamp(item.get("confidence")),
                    landmarks=tuple(
                        Landmark(
                            type=str(lm.get("type", "unknown")),
                            x=_clamp(lm.get("x")),
                            y=_clamp(lm.get("y")),
                        )
                        for lm in item.get("landmarks", [])
                        if isinstance(lm, dict)
                    ),
                    attributes=dict(item.get("attributes") or {}),
                )
            )

        return FaceDetectionResult(
            provider=self.provider_id,
            faces=faces,
            confidence=_overall_confidence(parsed, faces),
            processing_time_ms=self.elapsed_ms(started),
            confidence_threshold=self.min_confidence,
            detection_conditions=assess_image_quality(image),
            metadata={"model": self.model},
        )
