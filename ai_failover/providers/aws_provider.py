"""AWS Rekognition provider.

Wraps a boto3-style Rekognition client (`boto3.client("rekognition")`).
boto3 is synchronous, so every call runs in a worker thread to keep the
event loop free. Rekognition reports confidences on a 0-100 scale; they
are normalised to 0-1 here.
"""
import asyncio

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

MAX_LABELS = 50
MIN_LABEL_CONFIDENCE = 70
MIN_MODERATION_CONFIDENCE = 75

# Rekognition Quality scores (0-100)
POOR_SHARPNESS = 20.0
MEDIUM_SHARPNESS = 50.0
DIM_BRIGHTNESS = 25.0
BRIGHT_BRIGHTNESS = 85.0
# Head yaw beyond this (degrees) counts as a profile shot
PROFILE_YAW = 30.0

FACE_ATTRIBUTE_KEYS = ("AgeRange", "Smile", "Eyeglasses", "EyesOpen", "Gender", "Emotions")


def _ratio(value) -> float:
    return max(0.0, min(1.0, float(value or 0.0) / 100.0))


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def parse_labels(response: dict) -> list[Tag]:
    tags = []
    for label in response.get("Labels", []):
        categories = label.get("Categories") or []
        parents = label.get("Parents") or []
        if categories:
            category = categories[0].get("Name", "object")
        elif parents:
            category = parents[0].get("Name", "object")
        else:
            category = "object"
        tags.append(Tag(tag=label["Name"], confidence=_ratio(label.get("Confidence")), category=category))
    return tags


def parse_text(response: dict) -> list[Tag]:
    # LINE detections only; WORD entries repeat the same text
    return [
        Tag(
            tag=detection["DetectedText"],
            confidence=_ratio(detection.get("Confidence")),
            category="text",
        )
        for detection in response.get("TextDetections", [])
        if detection.get("Type", "LINE") == "LINE"
    ]


def parse_moderation(response: dict) -> list[Tag]:
    return [
        Tag(
            tag=label["Name"],
            confidence=_ratio(label.get("Confidence")),
            category=label.get("ParentName") or "moderation",
        )
        for label in response.get("ModerationLabels", [])
    ]


def parse_face(detail: dict) -> Face:
    box = detail.get("BoundingBox", {})
    return Face(
        bounding_box=BoundingBox(
            x=float(box.get("Left", 0.0)),
            y=float(box.get("Top", 0.0)),
            width=float(box.get("Width", 0.0)),
            height=float(box.get("Height", 0.0)),
        ),
        confidence=_ratio(detail.get("Confidence")),
        landmarks=tuple(
            Landmark(type=lm.get("Type", "unknown"), x=float(lm.get("X", 0.0)), y=float(lm.get("Y", 0.0)))
            for lm in detail.get("Landmarks", [])
        ),
        attributes={key: detail[key] for key in FACE_ATTRIBUTE_KEYS if key in detail},
    )


def assess_conditions(details: list[dict]) -> DetectionConditions:
    """Summarise Rekognition Quality and Pose data across all faces."""
    if not details:
        return DetectionConditions()

    sharpness = _mean([d.get("Quality", {}).get("Sharpness", 0.0) for d in details])
    brightness = _mean([d.get("Quality", {}).get("Brightness", 0.0) for d in details])
    yaw = _mean([abs(d.get("Pose", {}).get("Yaw", 0.0)) for d in details])

    if sharpness < POOR_SHARPNESS:
        quality = "poor"
    elif sharpness < MEDIUM_SHARPNESS:
        quality = "medium"
    else:
        quality = "high"

    if brightness < DIM_BRIGHTNESS:
        lighting = "dim"
    elif brightness > BRIGHT_BRIGHTNESS:
        lighting = "overexposed"
    else:
        lighting = "good"

    angle = "profile" if yaw > PROFILE_YAW else "frontal"
    return DetectionConditions(lighting=lighting, angle=angle, quality=quality)


class AWSRekognitionProvider(VendorAdapter):
    """AWS Rekognition labels, text, moderation and faces."""

    provider_id = ProviderID.AWS

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

    async def _send(self, method: str, **params) -> dict:
        return await asyncio.to_thread(getattr(self.client, method), **params)

    async def _analyze(
        self, image: bytes, analysis_type: AnalysisType, started: float
    ) -> AnalysisResult:
        image_param = {"Bytes": image}

        if analysis_type in (AnalysisType.SCENE, AnalysisType.OBJECT):
            response = await self._send(
                "detect_labels",
                Image=image_param,
                MaxLabels=MAX_LABELS,
                MinConfidence=MIN_LABEL_CONFIDENCE,
            )
            tags = parse_labels(response)
        elif analysis_type == AnalysisType.TEXT:
            response = await self._send("detect_text", Image=image_param)
            tags = parse_text(response)
        elif analysis_type == AnalysisType.SENTIMENT:
            response = await self._send(
                "detect_moderation_labels",
                Image=image_param,
                MinConfidence=MIN_MODERATION_CONFIDENCE,
            )
            tags = parse_moderation(response)
        else:
            # Face analysis: one tag per detected face
            response = await self._send("detect_faces", Image=image_param, Attributes=["DEFAULT"])
            tags = [
                Tag(tag="face", confidence=_ratio(d.get("Confidence")), category="face")
                for d in response.get("FaceDetails", [])
            ]

        return AnalysisResult(
            provider=self.provider_id,
            tags=tags,
            confidence=_mean([t.confidence for t in tags]),
            processing_time_ms=self.elapsed_ms(started),
            metadata={
                "analysis_type": analysis_type.value,
                "model_version": response.get("LabelModelVersion")
                or response.get("TextModelVersion")
                or response.get("ModerationModelVersion"),
            },
        )

    async def _detect_faces(self, image: bytes, started: float) -> FaceDetectionResult:
        response = await self._send("detect_faces", Image={"Bytes": image}, Attributes=["ALL"])
        details = response.get("FaceDetails", [])
        faces = [parse_face(d) for d in details]

        logger.debug("aws_faces_detected", count=len(faces))
        return FaceDetectionResult(
            provider=self.provider_id,
            faces=faces,
            confidence=_mean([f.confidence for f in faces]),
            processing_time_ms=self.elapsed_ms(started),
            confidence_threshold=self.min_confidence,
            detection_conditions=assess_conditions(details),
            metadata={"orientation_correction": response.get("OrientationCorrection")},
        )
