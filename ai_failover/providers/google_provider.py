"""Google Cloud Vision provider.

Accepts a `google.cloud.vision.ImageAnnotatorClient` (sync) or
`ImageAnnotatorAsyncClient`; only `annotate_image(request)` is used.
Responses are read by proto field name, so plain dicts in the same
shape work too (handy for tests and recorded fixtures).
"""
import asyncio
import inspect

import structlog

from ..config import ErrorThresholds, ProviderSettings
from .base import (
    AnalysisResult,
    AnalysisType,
    BoundingBox,
    DetectionConditions,
    Face,
    FaceDetectionResult,
    Landmark,
    ProviderID,
    Tag,
)
from .vendor import VendorAdapter

logger = structlog.get_logger()

MAX_RESULTS = 50

FEATURES = {
    AnalysisType.SCENE: ["LABEL_DETECTION"],
    AnalysisType.OBJECT: ["OBJECT_LOCALIZATION", "LABEL_DETECTION"],
    AnalysisType.TEXT: ["TEXT_DETECTION"],
    AnalysisType.SENTIMENT: ["SAFE_SEARCH_DETECTION", "FACE_DETECTION"],
    AnalysisType.FACE: ["FACE_DETECTION"],
}

LIKELIHOOD = {
    "UNKNOWN": 0,
    "VERY_UNLIKELY": 1,
    "UNLIKELY": 2,
    "POSSIBLE": 3,
    "LIKELY": 4,
    "VERY_LIKELY": 5,
}
# Likelihood score -> rough probability
LIKELIHOOD_SCORE = {0: 0.0, 1: 0.05, 2: 0.25, 3: 0.5, 4: 0.75, 5: 0.95}

EMOTIONS = ("joy", "sorrow", "anger", "surprise")
SAFE_SEARCH = ("adult", "spoof", "medical", "violence", "racy")

# Pan angle (degrees) beyond this counts as a profile shot
PROFILE_PAN = 30.0


def likelihood(value) -> int:
    """Normalise a Likelihood enum given as int or name."""
    if isinstance(value, str):
        return LIKELIHOOD.get(value.upper(), 0)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def to_dict(response) -> dict:
    """Convert a proto-plus response to a dict keyed by proto field names."""
    if isinstance(response, dict):
        return response
    return type(response).to_dict(response)


def parse_labels(response: dict) -> list[Tag]:
    return [
        Tag(tag=label["description"], confidence=float(label.get("score", 0.0)), category="label")
        for label in response.get("label_annotations", [])
    ]


def parse_objects(response: dict) -> list[Tag]:
    return [
        Tag(tag=obj["name"], confidence=float(obj.get("score", 0.0)), category="object")
        for obj in response.get("localized_object_annotations", [])
    ]


def parse_text(response: dict) -> list[Tag]:
    # The first annotation is the full text block; the rest are words
    annotations = response.get("text_annotations", [])
    if not annotations:
        return []
    full_text = annotations[0].get("description", "").strip()
    if not full_text:
        return []
    # TEXT_DETECTION carries no per-block score; page confidence if present
    pages = response.get("full_text_annotation", {}).get("pages", [])
    confidence = float(pages[0].get("confidence", 1.0)) if pages else 1.0
    return [
        Tag(tag=line.strip(), confidence=confidence, category="text")
        for line in full_text.splitlines()
        if line.strip()
    ]


def parse_sentiment(response: dict) -> list[Tag]:
    tags = []
    for face in response.get("face_annotations", []):
        for emotion in EMOTIONS:
            score = LIKELIHOOD_SCORE[likelihood(face.get(f"{emotion}_likelihood"))]
            if score >= 0.5:
                tags.append(Tag(tag=emotion, confidence=score, category="emotion"))
    safe = response.get("safe_search_annotation") or {}
    for key in SAFE_SEARCH:
        score = LIKELIHOOD_SCORE[likelihood(safe.get(key))]
        if score >= 0.5:
            tags.append(Tag(tag=key, confidence=score, category="safe_search"))
    return tags


def parse_face(annotation: dict) -> Face:
    vertices = annotation.get("bounding_poly", {}).get("vertices", [])
    xs = [float(v.get("x", 0)) for v in vertices] or [0.0]
    ys = [float(v.get("y", 0)) for v in vertices] or [0.0]
    attributes = {
        f"{emotion}_likelihood": likelihood(annotation.get(f"{emotion}_likelihood"))
        for emotion in EMOTIONS
    }
    attributes["headwear_likelihood"] = likelihood(annotation.get("headwear_likelihood"))
    return Face(
        # Google reports pixel coordinates
        bounding_box=BoundingBox(
            x=min(xs), y=min(ys), width=max(xs) - min(xs), height=max(ys) - min(ys)
        ),
        confidence=float(annotation.get("detection_confidence", 0.0)),
        landmarks=tuple(
            Landmark(
                type=str(lm.get("type_", "unknown")),
                x=float(lm.get("position", {}).get("x", 0.0)),
                y=float(lm.get("position", {}).get("y", 0.0)),
            )
            for lm in annotation.get("landmarks", [])
        ),
        attributes=attributes,
    )


def assess_conditions(annotations: list[dict]) -> DetectionConditions:
    """Worst-case conditions across all detected faces."""
    if not annotations:
        return DetectionConditions()

    blurred = max(likelihood(a.get("blurred_likelihood")) for a in annotations)
    under_exposed = max(likelihood(a.get("under_exposed_likelihood")) for a in annotations)
    pan = max(abs(float(a.get("pan_angle", 0.0))) for a in annotations)

    if blurred >= LIKELIHOOD["LIKELY"]:
        quality = "poor"
    elif blurred == LIKELIHOOD["POSSIBLE"]:
        quality = "medium"
    else:
        quality = "high"

    lighting = "dim" if under_exposed >= LIKELIHOOD["LIKELY"] else "good"
    angle = "profile" if pan > PROFILE_PAN else "frontal"
    return DetectionConditions(lighting=lighting, angle=angle, quality=quality)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class GoogleVisionProvider(VendorAdapter):
    """Google Cloud Vision annotate_image."""

    provider_id = ProviderID.GOOGLE

    def __init__(
        self,
        client,
        settings: ProviderSettings | None = None,
        thresholds: ErrorThresholds | None = None,
        min_confidence: float = 0.98,
    ):
        super().__init__(settings, thresholds, min_confidence)
        self.client = client

    def has_credentials(self) -> bool:
        return self.client is not None

    async def _annotate(self, image: bytes, features: list[str]) -> dict:
        request = {
            "image": {"content": image},
            "features": [{"type_": f, "max_results": MAX_RESULTS} for f in features],
        }
        if inspect.iscoroutinefunction(self.client.annotate_image):
            response = await self.client.annotate_image(request)
        else:
            response = await asyncio.to_thread(self.client.annotate_image, request)
        response = to_dict(response)

        error = response.get("error") or {}
        if error.get("message"):
            # Per-image errors come back in the payload, not as exceptions
            raise RuntimeError(f"Vision API error {error.get('code')}: {error['message']}")
        return response

    async def _analyze(
        self, image: bytes, analysis_type: AnalysisType, started: float
    ) -> AnalysisResult:
        response = await self._annotate(image, FEATURES[analysis_type])

        if analysis_type == AnalysisType.SCENE:
            tags = parse_labels(response)
        elif analysis_type == AnalysisType.OBJECT:
            tags = parse_objects(response) or parse_labels(response)
        elif analysis_type == AnalysisType.TEXT:
            tags = parse_text(response)
        elif analysis_type == AnalysisType.SENTIMENT:
            tags = parse_sentiment(response)
        else:
            tags = [
                Tag(tag="face", confidence=float(a.get("detection_confidence", 0.0)), category="face")
                for a in response.get("face_annotations", [])
            ]

        return AnalysisResult(
            provider=self.provider_id,
            tags=tags,
            confidence=_mean([t.confidence for t in tags]),
            processing_time_ms=self.elapsed_ms(started),
            metadata={"analysis_type": analysis_type.value, "features": FEATURES[analysis_type]},
        )

    async def _detect_faces(self, image: bytes, started: float) -> FaceDetectionResult:
        response = await self._annotate(image, ["FACE_DETECTION"])
        annotations = response.get("face_annotations", [])
        faces = [parse_face(a) for a in annotations]

        logger.debug("google_faces_detected", count=len(faces))
        return FaceDetectionResult(
            provider=self.provider_id,
            faces=faces,
            confidence=_mean([f.confidence for f in faces]),
            processing_time_ms=self.elapsed_ms(started),
            confidence_threshold=self.min_confidence,
            detection_conditions=assess_conditions(annotations),
            metadata={"features": ["FACE_DETECTION"]},
        )
