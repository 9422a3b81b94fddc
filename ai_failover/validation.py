"""Quality checks applied to vendor results before they are accepted.

Pure functions: no I/O, no state. Every check runs, so the report lists
all reasons a result was rejected.
"""
from dataclasses import dataclass, field

from .config import FailoverConfig
from .providers.base import AnalysisResult, FaceDetectionResult

POOR_QUALITY = "poor"


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validating one result."""
    passed: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.passed


def _report(reasons: list[str]) -> ValidationReport:
    return ValidationReport(passed=not reasons, reasons=tuple(reasons))


def _common_checks(result, item_count: int, item_name: str, config: FailoverConfig) -> list[str]:
    reasons = []
    if result.confidence < config.min_confidence:
        reasons.append(
            f"confidence {result.confidence:.3f} below minimum {config.min_confidence:.3f}"
        )
    if item_count == 0:
        reasons.append(f"no {item_name} returned")
    timeout_ms = config.global_timeout * 1000
    if result.processing_time_ms >= timeout_ms:
        reasons.append(
            f"processing time {result.processing_time_ms:.0f}ms not below "
            f"global timeout {timeout_ms:.0f}ms"
        )
    return reasons


def validate_analysis(result: AnalysisResult, config: FailoverConfig) -> ValidationReport:
    """Check an analysis result against the configured quality bar."""
    return _report(_common_checks(result, len(result.tags), "tags", config))


def validate_face_detection(
    result: FaceDetectionResult, config: FailoverConfig
) -> ValidationReport:
    """Check a face detection result; poor capture quality also rejects."""
    reasons = _common_checks(result, len(result.faces), "faces", config)
    if result.detection_conditions.quality == POOR_QUALITY:
        reasons.append("detection quality is poor")
    return _report(reasons)


def validate_result(result, config: FailoverConfig) -> ValidationReport:
    """Dispatch on result type."""
    if isinstance(result, FaceDetectionResult):
        return validate_face_detection(result, config)
    if isinstance(result, AnalysisResult):
        return validate_analysis(result, config)
    return ValidationReport(
        passed=False, reasons=(f"unexpected result type {type(result).__name__}",)
    )
