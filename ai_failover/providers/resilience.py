"""Shared resilience scaffolding for vendor adapters.

Every vendor adapter owns one of each:
- SlidingWindowRateLimiter: caps requests per window for that vendor
- CircuitBreaker: stops calling a vendor after repeated failures
- ProviderTelemetry: request/error/latency bookkeeping

All three are shared by every concurrent request hitting the adapter,
so state changes happen under a threading.Lock.
"""
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from ..errors import (
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
)
from .base import ProviderStatus

logger = structlog.get_logger()

# Limiter usage above this fraction reports the provider as rate limited
RATE_LIMIT_HEADROOM = 0.9

# AWS error codes that mean "slow down"
AWS_THROTTLING_CODES = {
    "ThrottlingException",
    "ProvisionedThroughputExceededException",
    "LimitExceededException",
    "TooManyRequestsException",
}


class SlidingWindowRateLimiter:
    """Allow at most `max_requests` in any `window_seconds` span."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def try_acquire(self) -> bool:
        """Consume one slot if available."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            if len(self._timestamps) >= self.max_requests:
                return False
            self._timestamps.append(now)
            return True

    def utilization(self) -> float:
        """Fraction of the window budget already consumed."""
        with self._lock:
            self._evict(self._clock())
            return len(self._timestamps) / self.max_requests

    def retry_after(self) -> float:
        """Seconds until the oldest slot frees up (0 if one is free now)."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            if len(self._timestamps) < self.max_requests:
                return 0.0
            return max(0.0, self._timestamps[0] + self.window_seconds - now)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Per-vendor circuit breaker.

    Opens after `failure_threshold` consecutive failures. After
    `reset_timeout` seconds one trial call is let through (half-open);
    its outcome closes or re-opens the circuit.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state()

    def _current_state(self) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and self._clock() - self._opened_at >= self.reset_timeout
        ):
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def allow_request(self) -> bool:
        """Whether a call may go through right now."""
        with self._lock:
            state = self._current_state()
            if state == CircuitState.CLOSED:
                return True
            if state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            return False

    def release_trial(self) -> None:
        """Give back a half-open trial slot whose call never finished."""
        with self._lock:
            self._trial_in_flight = False

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._state = CircuitState.CLOSED
            self._opened_at = None
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            state = self._current_state()
            if state == CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
                if state != CircuitState.OPEN:
                    logger.warning("circuit_opened", failures=self._failures)
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                self._trial_in_flight = False


@dataclass
class TelemetrySnapshot:
    request_count: int
    error_count: int
    consecutive_failures: int
    avg_latency_ms: float
    last_error: str | None
    last_error_at: float | None

    @property
    def error_rate(self) -> float:
        """Error percentage (0-100)."""
        if self.request_count == 0:
            return 0.0
        return self.error_count / self.request_count * 100


class ProviderTelemetry:
    """Request, error and latency bookkeeping for one adapter."""

    def __init__(self):
        self._request_count = 0
        self._error_count = 0
        self._consecutive_failures = 0
        self._success_count = 0
        self._avg_latency_ms = 0.0
        self._last_error: str | None = None
        self._last_error_at: float | None = None
        self._lock = threading.Lock()

    def record_success(self, latency_ms: float) -> None:
        with self._lock:
            self._request_count += 1
            self._consecutive_failures = 0
            self._success_count += 1
            # Running average over successful requests
            self._avg_latency_ms += (latency_ms - self._avg_latency_ms) / self._success_count

    def record_failure(self, error: Exception) -> None:
        with self._lock:
            self._request_count += 1
            self._error_count += 1
            self._consecutive_failures += 1
            self._last_error = str(error)
            self._last_error_at = time.time()

    def snapshot(self) -> TelemetrySnapshot:
        with self._lock:
            return TelemetrySnapshot(
                request_count=self._request_count,
                error_count=self._error_count,
                consecutive_failures=self._consecutive_failures,
                avg_latency_ms=self._avg_latency_ms,
                last_error=self._last_error,
                last_error_at=self._last_error_at,
            )


def derive_status(
    telemetry: TelemetrySnapshot,
    breaker: CircuitBreaker,
    limiter: SlidingWindowRateLimiter,
    thresholds,
) -> ProviderStatus:
    """Turn an adapter's bookkeeping into a ProviderStatus.

    Args:
        thresholds: ErrorThresholds with consecutive, percentage, min_requests.
    """
    if breaker.is_open:
        return ProviderStatus.UNAVAILABLE
    if limiter.utilization() > RATE_LIMIT_HEADROOM:
        return ProviderStatus.RATE_LIMITED
    if telemetry.consecutive_failures >= thresholds.consecutive:
        return ProviderStatus.DEGRADED
    if (
        telemetry.request_count >= thresholds.min_requests
        and telemetry.error_rate >= thresholds.percentage
    ):
        return ProviderStatus.DEGRADED
    return ProviderStatus.AVAILABLE


def _status_code(error: Exception) -> int | None:
    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def _aws_error_code(error: Exception) -> str | None:
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        return response.get("Error", {}).get("Code")
    return None


def classify_vendor_error(provider, operation: str, error: Exception) -> ProviderError:
    """Map any vendor SDK exception onto the per-attempt error taxonomy."""
    if isinstance(error, ProviderError):
        return error

    name = type(error).__name__
    if (
        _status_code(error) == 429
        or _aws_error_code(error) in AWS_THROTTLING_CODES
        or name in ("RateLimitError", "ResourceExhausted", "TooManyRequests")
    ):
        mapped: ProviderError = RateLimitedError(provider, str(error) or name, operation)
    elif isinstance(error, TimeoutError) or "Timeout" in name:
        mapped = ProviderTimeoutError(provider, str(error) or name, operation)
    else:
        mapped = ProviderError(provider, f"{name}: {error}", operation)
    mapped.__cause__ = error
    return mapped


__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "ProviderTelemetry",
    "SlidingWindowRateLimiter",
    "TelemetrySnapshot",
    "classify_vendor_error",
    "derive_status",
]
