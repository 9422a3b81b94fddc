"""Base class for adapters that wrap a real vendor API.

Handles the plumbing every vendor needs so concrete adapters only
implement the vendor call and response parsing:
- rate limiting, circuit breaking and per-call timeouts
- timing and telemetry
- mapping vendor exceptions onto ProviderError / RateLimitedError
- deriving get_status() from the adapter's own bookkeeping
"""
import asyncio
import time
from abc import abstractmethod
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from ..config import ErrorThresholds, ProviderSettings
from ..errors import CircuitOpenError, ProviderTimeoutError, RateLimitedError
from .base import (
    AnalysisResult,
    AnalysisType,
    FaceDetectionResult,
    ProviderAdapter,
    ProviderStatus,
)
from .resilience import (
    CircuitBreaker,
    ProviderTelemetry,
    SlidingWindowRateLimiter,
    classify_vendor_error,
    derive_status,
)

logger = structlog.get_logger()

R = TypeVar("R")


class VendorAdapter(ProviderAdapter):
    """ProviderAdapter with its own rate limiter, circuit breaker and telemetry."""

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        thresholds: ErrorThresholds | None = None,
        min_confidence: float = 0.98,
    ):
        self.settings = settings or ProviderSettings()
        self.thresholds = thresholds or ErrorThresholds()
        self.min_confidence = min_confidence
        self.rate_limiter = SlidingWindowRateLimiter(
            max_requests=self.settings.max_requests,
            window_seconds=self.settings.window_seconds,
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.settings.circuit_failure_threshold,
            reset_timeout=self.settings.circuit_reset_timeout,
        )
        self.telemetry = ProviderTelemetry()

    async def analyze(self, image: bytes, analysis_type: AnalysisType) -> AnalysisResult:
        analysis_type = AnalysisType(analysis_type)
        return await self._call(
            "analyze",
            lambda started: self._analyze(image, analysis_type, started),
        )

    async def detect_faces(self, image: bytes) -> FaceDetectionResult:
        return await self._call(
            "detect_faces",
            lambda started: self._detect_faces(image, started),
        )

    async def get_status(self) -> ProviderStatus:
        """Status derived from breaker, limiter and error thresholds."""
        if not self.has_credentials():
            return ProviderStatus.UNAVAILABLE
        return derive_status(
            self.telemetry.snapshot(),
            self.circuit_breaker,
            self.rate_limiter,
            self.thresholds,
        )

    def has_credentials(self) -> bool:
        """Override to report missing vendor configuration."""
        return True

    async def _call(
        self,
        operation: str,
        func: Callable[[float], Awaitable[R]],
    ) -> R:
        """Run one vendor call through breaker, limiter and timeout.

        Only calls the breaker lets through take a rate-limit slot.
        """
        if not self.circuit_breaker.allow_request():
            raise CircuitOpenError(self.provider_id, "circuit breaker is open", operation)

        if not self.rate_limiter.try_acquire():
            self.circuit_breaker.release_trial()
            error = RateLimitedError(
                self.provider_id,
                f"local limit of {self.settings.max_requests} requests per "
                f"{self.settings.window_seconds:.0f}s reached",
                operation,
            )
            self.telemetry.record_failure(error)
            raise error

        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(func(started), timeout=self.settings.timeout)
        except asyncio.CancelledError:
            self.circuit_breaker.release_trial()
            raise
        except asyncio.TimeoutError as e:
            error = ProviderTimeoutError(
                self.provider_id,
                f"request exceeded {self.settings.timeout}s",
                operation,
            )
            self._record_failure(operation, error, started)
            raise error from e
        except Exception as e:
            error = classify_vendor_error(self.provider_id, operation, e)
            self._record_failure(operation, error, started)
            if error is e:
                raise
            raise error from e

        latency_ms = (time.perf_counter() - started) * 1000
        self.telemetry.record_success(latency_ms)
        self.circuit_breaker.record_success()
        return result

    def _record_failure(self, operation: str, error: Exception, started: float) -> None:
        self.telemetry.record_failure(error)
        self.circuit_breaker.record_failure()
        snapshot = self.telemetry.snapshot()
        logger.error(
            "vendor_call_failed",
            provider=self.provider_id.value,
            operation=operation,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            error=str(error),
            error_count=snapshot.error_count,
        )

    @staticmethod
    def elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000

    @abstractmethod
    async def _analyze(
        self, image: bytes, analysis_type: AnalysisType, started: float
    ) -> AnalysisResult:
        """Call the vendor and build an AnalysisResult."""
        pass

    @abstractmethod
    async def _detect_faces(self, image: bytes, started: float) -> FaceDetectionResult:
        """Call the vendor and build a FaceDetectionResult."""
        pass
