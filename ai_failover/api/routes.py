"""API route definitions.

All endpoints return consistent APIResponse[T] structure with error codes.
"""
from pathlib import Path

import structlog
from fastapi import APIRouter, File, Form, Request, UploadFile

from ..errors import (
    AllProvidersFailedError,
    FailoverError,
    GlobalTimeoutError,
    NoProvidersAvailableError,
)
from ..orchestrator import FailoverOrchestrator
from ..providers.base import AnalysisType
from ..utils.image import SUPPORTED_FORMATS, is_supported_format, sniff_image_format
from .schemas import (
    AnalysisResponse,
    APIResponse,
    ErrorCode,
    FaceDetectionResponse,
    HealthResponse,
    MetricsResponse,
    ProviderStatusData,
    ProviderStatusResponse,
    analysis_to_data,
    faces_to_data,
)

logger = structlog.get_logger()
router = APIRouter()

VERSION = "0.1.0"


def get_orchestrator(request: Request) -> FailoverOrchestrator:
    """Get the orchestrator from app state."""
    return request.app.state.orchestrator


async def read_image(image: UploadFile) -> tuple[bytes | None, APIResponse | None]:
    """Read an upload and check it is an image we can send to vendors.

    Returns (content, None) on success or (None, error response).
    """
    if image.filename and Path(image.filename).suffix and not is_supported_format(image.filename):
        ext = Path(image.filename).suffix.lower()
        return None, APIResponse.fail(
            f"Unsupported format: {ext}. Supported: {sorted(SUPPORTED_FORMATS)}",
            ErrorCode.UNSUPPORTED_FORMAT,
        )

    content = await image.read()
    if not content:
        return None, APIResponse.fail("Empty image upload", ErrorCode.VALIDATION_ERROR)

    try:
        sniff_image_format(content)
    except ValueError as e:
        return None, APIResponse.fail(str(e), ErrorCode.UNSUPPORTED_FORMAT)

    return content, None


def failover_error_response(error: FailoverError) -> APIResponse:
    """Map a fatal orchestrator error to an error response."""
    if isinstance(error, NoProvidersAvailableError):
        return APIResponse.fail(str(error), ErrorCode.NO_PROVIDERS_AVAILABLE)
    if isinstance(error, AllProvidersFailedError):
        return APIResponse.fail(str(error), ErrorCode.ALL_PROVIDERS_FAILED)
    return APIResponse.fail(str(error), ErrorCode.ANALYSIS_TIMEOUT)


# =============================================================================
# Health Check
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Check if the API is running and which providers are configured."""
    orchestrator = get_orchestrator(request)
    return APIResponse.ok(
        data={
            "status": "healthy",
            "providers": [p.value for p in orchestrator.adapters],
            "version": VERSION,
        }
    )


# =============================================================================
# Provider Status & Metrics
# =============================================================================

@router.get("/providers/status", response_model=ProviderStatusResponse)
async def provider_status(request: Request):
    """Poll every provider and report its current status."""
    orchestrator = get_orchestrator(request)
    statuses = await orchestrator.get_provider_status()
    return APIResponse.ok(
        data=ProviderStatusData(
            providers={p.value: s.value for p, s in statuses.items()},
            available=[p.value for p in orchestrator.health.order(statuses)],
        )
    )


@router.get("/providers/metrics", response_model=MetricsResponse)
async def provider_metrics(request: Request):
    """Usage, error and latency counters per provider."""
    orchestrator = get_orchestrator(request)
    return APIResponse.ok(data=orchestrator.metrics.summary())


# =============================================================================
# Analysis
# =============================================================================

@router.post("/analyze", response_model=AnalysisResponse)
async def analyze(
    request: Request,
    image: UploadFile = File(...),
    analysis_type: str = Form(AnalysisType.SCENE.value),
):
    """Analyze an uploaded image with automatic provider failover.

    analysis_type is one of scene, object, text, sentiment, face.
    """
    logger.info("analyze_request", filename=image.filename, analysis_type=analysis_type)

    try:
        kind = AnalysisType(analysis_type)
    except ValueError:
        return APIResponse.fail(
            f"Unknown analysis_type: {analysis_type}. "
            f"Supported: {[t.value for t in AnalysisType]}",
            ErrorCode.VALIDATION_ERROR,
        )

    content, error = await read_image(image)
    if error:
        return error

    try:
        result = await get_orchestrator(request).analyze_image(content, kind)
    except (NoProvidersAvailableError, AllProvidersFailedError, GlobalTimeoutError) as e:
        logger.error("analyze_failed", error=str(e), error_type=type(e).__name__)
        return failover_error_response(e)

    return APIResponse.ok(data=analysis_to_data(result, kind.value))


@router.post("/detect-faces", response_model=FaceDetectionResponse)
async def detect_faces(request: Request, image: UploadFile = File(...)):
    """Detect faces in an uploaded image with automatic provider failover."""
    logger.info("detect_faces_request", filename=image.filename)

    content, error = await read_image(image)
    if error:
        return error

    try:
        result = await get_orchestrator(request).detect_faces(content)
    except (NoProvidersAvailableError, AllProvidersFailedError, GlobalTimeoutError) as e:
        logger.error("detect_faces_failed", error=str(e), error_type=type(e).__name__)
        return failover_error_response(e)

    return APIResponse.ok(data=faces_to_data(result))
