"""Pydantic schemas for API requests and responses.

All API responses follow a consistent structure:
{
    "success": true/false,
    "data": <response-specific data>,
    "error": "error message if failed",
    "meta": {"error_code": "CODE", "timestamp": "..."}
}
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from ..providers.base import AnalysisResult, FaceDetectionResult


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""
    # General errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"

    # Failover errors
    NO_PROVIDERS_AVAILABLE = "NO_PROVIDERS_AVAILABLE"
    ALL_PROVIDERS_FAILED = "ALL_PROVIDERS_FAILED"
    ANALYSIS_TIMEOUT = "ANALYSIS_TIMEOUT"


# =============================================================================
# Response Meta
# =============================================================================

class ResponseMeta(BaseModel):
    """Metadata included in all API responses."""
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    error_code: ErrorCode | None = None


# =============================================================================
# Generic API Response
# =============================================================================

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Generic wrapper for all API responses.

    Usage:
        return APIResponse(success=True, data=MyData(...))
        return APIResponse.fail("Something failed", ErrorCode.INTERNAL_ERROR)
    """
    success: bool
    data: T | None = None
    error: str | None = None
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    @classmethod
    def ok(cls, data: T, **meta_kwargs) -> "APIResponse[T]":
        """Create a successful response."""
        return cls(
            success=True,
            data=data,
            meta=ResponseMeta(**meta_kwargs)
        )

    @classmethod
    def fail(cls, error: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR) -> "APIResponse[None]":
        """Create an error response."""
        return cls(
            success=False,
            error=error,
            meta=ResponseMeta(error_code=error_code)
        )


# =============================================================================
# Data Models (used in responses)
# =============================================================================

class TagData(BaseModel):
    tag: str
    confidence: float
    category: str


class AnalysisData(BaseModel):
    """Validated analysis result."""
    provider: str
    analysis_type: str
    tags: list[TagData]
    confidence: float
    processing_time_ms: float
    timestamp: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class FaceData(BaseModel):
    bounding_box: dict[str, float]
    confidence: float
    landmarks: list[dict[str, Any]] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)


class FaceDetectionData(BaseModel):
    """Validated face detection result."""
    provider: str
    faces: list[FaceData]
    confidence: float
    processing_time_ms: float
    confidence_threshold: float
    detection_conditions: dict[str, str]
    timestamp: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProviderStatusData(BaseModel):
    """Fresh status of every configured provider."""
    providers: dict[str, str]
    available: list[str]


# =============================================================================
# Response Type Aliases (for cleaner route signatures)
# =============================================================================

HealthResponse = APIResponse[dict]
AnalysisResponse = APIResponse[AnalysisData]
FaceDetectionResponse = APIResponse[FaceDetectionData]
ProviderStatusResponse = APIResponse[ProviderStatusData]
MetricsResponse = APIResponse[dict]


# =============================================================================
# Conversion Utilities
# =============================================================================

def analysis_to_data(result: AnalysisResult, analysis_type: str) -> AnalysisData:
    """Convert an AnalysisResult to its response model."""
    return AnalysisData(analysis_type=analysis_type, **result.to_dict())


def faces_to_data(result: FaceDetectionResult) -> FaceDetectionData:
    """Convert a FaceDetectionResult to its response model."""
    return FaceDetectionData(**result.to_dict())
