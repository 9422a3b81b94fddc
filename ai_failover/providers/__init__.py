"""Vision providers for image analysis and face detection."""
from .base import (
    AnalysisRequest,
    AnalysisResult,
    AnalysisType,
    BoundingBox,
    DetectionConditions,
    Face,
    FaceDetectionResult,
    Landmark,
    ProviderAdapter,
    ProviderID,
    ProviderStatus,
    Tag,
)

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "AnalysisType",
    "BoundingBox",
    "DetectionConditions",
    "Face",
    "FaceDetectionResult",
    "Landmark",
    "ProviderAdapter",
    "ProviderID",
    "ProviderStatus",
    "Tag",
    "AWSRekognitionProvider",
    "GoogleVisionProvider",
    "MockProvider",
    "OpenAIProvider",
    "VendorAdapter",
]


def __getattr__(name):
    """Lazy import to avoid circular dependencies with config."""
    if name == "OpenAIProvider":
        from .openai_provider import OpenAIProvider

        return OpenAIProvider
    if name == "AWSRekognitionProvider":
        from .aws_provider import AWSRekognitionProvider

        return AWSRekognitionProvider
    if name == "GoogleVisionProvider":
        from .google_provider import GoogleVisionProvider

        return GoogleVisionProvider
    if name == "MockProvider":
        from .mock_provider import MockProvider

        return MockProvider
    if name == "VendorAdapter":
        from .vendor import VendorAdapter

        return VendorAdapter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
