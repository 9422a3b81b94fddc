"""Per-provider usage, error and latency metrics."""
import threading
import time
from collections import deque
from dataclasses import dataclass, field

import psutil
import structlog

from ..providers.base import ProviderID

logger = structlog.get_logger()

# Recent latency samples kept per provider for the rolling average
LATENCY_WINDOW = 50


@dataclass
class ProviderMetrics:
    """Counters for one provider. Never reset while the process lives."""

    provider: ProviderID
    request_count: int = 0
    error_count: int = 0
    usage_count: int = 0
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    latency_samples: deque = field(default_factory=lambda: deque(maxlen=LATENCY_WINDOW))
    total_latency_ms: float = 0.0
    last_used_at: float | None = None
    last_error_at: float | None = None
    last_error: str | None = None

    @property
    def avg_latency_ms(self) -> float:
        """Average latency over all recorded attempts."""
        if self.request_count == 0:
            return 0.0
        return self.total_latency_ms / self.request_count

    @property
    def recent_latency_ms(self) -> float:
        """Average latency over the last LATENCY_WINDOW attempts."""
        if not self.latency_samples:
            return 0.0
        return sum(self.latency_samples) / len(self.latency_samples)

    @property
    def error_rate(self) -> float:
        """Error percentage (0-100)."""
        if self.request_count == 0:
            return 0.0
        return self.error_count / self.request_count * 100

    @property
    def success_rate(self) -> float:
        """Fraction of attempts that produced an accepted result."""
        if self.request_count == 0:
            return 0.0
        return self.usage_count / self.request_count

    def copy(self) -> "ProviderMetrics":
        return ProviderMetrics(
            provider=self.provider,
            request_count=self.request_count,
            error_count=self.error_count,
            usage_count=self.usage_count,
            errors_by_kind=dict(self.errors_by_kind),
            latency_samples=deque(self.latency_samples, maxlen=LATENCY_WINDOW),
            total_latency_ms=self.total_latency_ms,
            last_used_at=self.last_used_at,
            last_error_at=self.last_error_at,
            last_error=self.last_error,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "provider": self.provider.value,
            "request_count": self.request_count,
            "error_count": self.error_count,
            "usage_count": self.usage_count,
            "errors_by_kind": dict(self.errors_by_kind),
            "error_rate": round(self.error_rate, 2),
            "success_rate": round(self.success_rate, 4),
            "avg_latency_ms": round(self.avg_latency_ms, 1),
            "recent_latency_ms": round(self.recent_latency_ms, 1),
            "last_used_at": self.last_used_at,
            "last_error_at": self.last_error_at,
            "last_error": self.last_error,
        }


class MetricsCollector:
    """Thread-safe metrics shared by every request.

    Written after each attempt by the orchestrator, read by the status
    endpoint. The orchestrator never reads it back for decisions.
    """

    def __init__(self):
        self._providers: dict[ProviderID, ProviderMetrics] = {}
        self._requests = 0
        self._failed_requests = 0
        self._outcomes: dict[str, int] = {}
        self._started_at = time.time()
        self._lock = threading.Lock()

    def _entry(self, provider: ProviderID) -> ProviderMetrics:
        entry = self._providers.get(provider)
        if entry is None:
            entry = self._providers[provider] = ProviderMetrics(provider=provider)
        return entry

    def record_success(self, provider: ProviderID, latency_ms: float) -> None:
        """Record an attempt whose result was accepted."""
        with self._lock:
            entry = self._entry(provider)
            entry.request_count += 1
            entry.usage_count += 1
            entry.total_latency_ms += latency_ms
            entry.latency_samples.append(latency_ms)
            entry.last_used_at = time.time()

    def record_failure(
        self,
        provider: ProviderID,
        latency_ms: float,
        error: Exception,
        kind: str | None = None,
    ) -> None:
        """Record a failed or rejected attempt."""
        kind = kind or getattr(error, "kind", "provider_error")
        with self._lock:
            entry = self._entry(provider)
            now = time.time()
            entry.request_count += 1
            entry.error_count += 1
            entry.errors_by_kind[kind] = entry.errors_by_kind.get(kind, 0) + 1
            entry.total_latency_ms += latency_ms
            entry.latency_samples.append(latency_ms)
            entry.last_used_at = now
            entry.last_error_at = now
            entry.last_error = str(error)

    def record_request(self, outcome: str) -> None:
        """Record the final outcome of one orchestrated request."""
        with self._lock:
            self._requests += 1
            if outcome != "success":
                self._failed_requests += 1
            self._outcomes[outcome] = self._outcomes.get(outcome, 0) + 1

    def get(self, provider: ProviderID) -> ProviderMetrics:
        """Copy of one provider's metrics (zeroed if never used)."""
        with self._lock:
            entry = self._providers.get(provider)
            return entry.copy() if entry else ProviderMetrics(provider=provider)

    def snapshot(self) -> dict[ProviderID, ProviderMetrics]:
        """Copies of every provider's metrics."""
        with self._lock:
            return {p: m.copy() for p, m in self._providers.items()}

    def summary(self) -> dict:
        """Summary for the status endpoint."""
        providers = self.snapshot()
        with self._lock:
            requests = self._requests
            failed = self._failed_requests
            outcomes = dict(self._outcomes)

        process = psutil.Process()
        return {
            "requests": requests,
            "failed_requests": failed,
            "error_rate": round(failed / requests * 100, 2) if requests else 0.0,
            "outcomes": outcomes,
            "providers": {p.value: m.to_dict() for p, m in providers.items()},
            "uptime_seconds": round(time.time() - self._started_at, 1),
            "memory_mb": round(process.memory_info().rss / (1024 * 1024), 1),
        }
