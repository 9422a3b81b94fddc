"""Base classes and result types for vision providers"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ProviderID(str, Enum):
    OPENAI = "openai"
    AWS = "aws"
    GOOGLE = "google"


class ProviderStatus(str, Enum):
    AVAILABLE = "available"
    DEGRADED = "degraded"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"


class AnalysisType(str, Enum):
    SCENE = "scene"
    OBJECT = "object"
    TEXT = "text"
    SENTIMENT = "sentiment"
    FACE = "face"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AnalysisRequest:
    """Image payload plus the kind of analysis wanted."""
    image: bytes
    analysis_type: AnalysisType

    def __post_init__(self):
        if not self.image:
            raise ValueError("Image payload is empty")
        # Accept plain strings ("scene") from callers
        object.__setattr__(self, "analysis_type", AnalysisType(self.analysis_type))


@dataclass(frozen=True)
class Tag:
    tag: str
    confidence: float
    category: str


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Landmark:
    type: str
    x: float
    y: float


@dataclass(frozen=True)
class Face:
    bounding_box: BoundingBox
    confidence: float
    landmarks: tuple[Landmark, ...] = ()
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DetectionConditions:
    """Capture conditions reported (or estimated) for a face detection."""
    lighting: str = "unknown"
    angle: str = "unknown"
    quality: str = "medium"


@dataclass
class AnalysisResult:
    """Result from image analysis."""
    provider: ProviderID
    tags: list[Tag]
    confidence: float
    processing_time_ms: float
    timestamp: datetime = field(default_factory=utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "provider": self.provider.value,
            "tags": [
                {"tag": t.tag, "confidence": t.confidence, "category": t.category}
                for t in self.tags
            ],
            "confidence": self.confidence,
            "processing_time_ms": round(self.processing_time_ms, 1),
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


@dataclass
class FaceDetectionResult:
    """Result from face detection."""
    provider: ProviderID
    faces: list[Face]
    confidence: float
    processing_time_ms: float
    confidence_threshold: float = 0.0
    detection_conditions: DetectionConditions = field(default_factory=DetectionConditions)
    timestamp: datetime = field(default_factory=utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "provider": self.provider.value,
            "faces": [
                {
                    "bounding_box": {
                        "x": f.bounding_box.x,
                        "y": f.bounding_box.y,
                        "width": f.bounding_box.width,
                        "height": f.bounding_box.height,
                    },
                    "confidence": f.confidence,
                    "landmarks": [
                        {"type": lm.type, "x": lm.x, "y": lm.y} for lm in f.landmarks
                    ],
                    "attributes": f.attributes,
                }
                for f in self.faces
            ],
            "confidence": self.confidence,
            "processing_time_ms": round(self.processing_time_ms, 1),
            "confidence_threshold": self.confidence_threshold,
            "detection_conditions": {
                "lighting": self.detection_conditions.lighting,
                "angle": self.detection_conditions.angle,
                "quality": self.detection_conditions.quality,
            },
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class ProviderAdapter(ABC):
    """Abstract interface for cloud vision providers.

    Implement this to add new vendors. The orchestrator doesn't
    care which vendor answers, only that it returns AnalysisResult
    or FaceDetectionResult. One instance per provider is shared by
    all concurrent requests, so implementations must keep their
    own bookkeeping thread-safe.
    """

    provider_id: ProviderID

    @abstractmethod
    async def analyze(self, image: bytes, analysis_type: AnalysisType) -> AnalysisResult:
        """Analyze a single image."""
        pass

    @abstractmethod
    async def detect_faces(self, image: bytes) -> FaceDetectionResult:
        """Detect faces in a single image."""
        pass

    @abstractmethod
    async def get_status(self) -> ProviderStatus:
        """Report whether this provider should receive traffic."""
        pass
