"""Configuration for the AI failover service."""
import os
from dataclasses import dataclass, field

from .providers.base import ProviderID

# Failover policy
PROVIDER_ORDER = os.getenv("FAILOVER_PROVIDER_ORDER", "openai,aws,google")
RETRY_ATTEMPTS = int(os.getenv("FAILOVER_RETRY_ATTEMPTS", "3"))
RETRY_DELAY = float(os.getenv("FAILOVER_RETRY_DELAY", "1.0"))
BACKOFF_MULTIPLIER = float(os.getenv("FAILOVER_BACKOFF_MULTIPLIER", "1.5"))
MAX_DELAY = float(os.getenv("FAILOVER_MAX_DELAY", "30.0"))
GLOBAL_TIMEOUT = float(os.getenv("FAILOVER_GLOBAL_TIMEOUT", "60.0"))
MIN_CONFIDENCE = float(os.getenv("FAILOVER_MIN_CONFIDENCE", "0.98"))

# Health checks
HEALTH_CHECK_INTERVAL = float(os.getenv("HEALTH_CHECK_INTERVAL", "60.0"))
HEALTH_CHECK_TIMEOUT = float(os.getenv("HEALTH_CHECK_TIMEOUT", "5.0"))

# Degradation thresholds
ERROR_THRESHOLD_CONSECUTIVE = int(os.getenv("ERROR_THRESHOLD_CONSECUTIVE", "5"))
ERROR_THRESHOLD_PERCENTAGE = float(os.getenv("ERROR_THRESHOLD_PERCENTAGE", "20"))
ERROR_THRESHOLD_MIN_REQUESTS = int(os.getenv("ERROR_THRESHOLD_MIN_REQUESTS", "10"))

# Vendor credentials (a provider without them is left out)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
GOOGLE_APPLICATION_CREDENTIALS = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

# Serve every provider from MockProvider instead of the vendor SDKs (development only)
USE_MOCKS = os.getenv("FAILOVER_USE_MOCKS", "false").lower() in ("1", "true", "yes")

# API settings
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))


@dataclass(frozen=True)
class HealthCheckConfig:
    interval: float = 60.0
    timeout: float = 5.0


@dataclass(frozen=True)
class ErrorThresholds:
    """When a provider stops being `available`.

    consecutive: failures in a row before it is degraded.
    percentage: error rate (0-100) over the measured window.
    min_requests: requests needed before the rate is trusted.
    """
    consecutive: int = 5
    percentage: float = 20.0
    min_requests: int = 10


@dataclass(frozen=True)
class FailoverConfig:
    """Immutable failover policy. Durations are in seconds."""
    provider_order: tuple[ProviderID, ...] = (
        ProviderID.OPENAI,
        ProviderID.AWS,
        ProviderID.GOOGLE,
    )
    retry_attempts: int = 3
    retry_delay: float = 1.0
    backoff_multiplier: float = 1.5
    max_delay: float = 30.0
    global_timeout: float = 60.0
    min_confidence: float = 0.98
    health_check: HealthCheckConfig = field(default_factory=HealthCheckConfig)
    error_thresholds: ErrorThresholds = field(default_factory=ErrorThresholds)

    def __post_init__(self):
        order = tuple(ProviderID(p) for p in self.provider_order)
        if len(set(order)) != len(order):
            raise ValueError(f"Duplicate provider in order: {[p.value for p in order]}")
        object.__setattr__(self, "provider_order", order)

        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        if self.retry_delay < 0 or self.max_delay < 0:
            raise ValueError("retry_delay and max_delay must not be negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.global_timeout <= 0:
            raise ValueError("global_timeout must be positive")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError("min_confidence must be between 0 and 1")

    def backoff_delay(self, attempt: int) -> float:
        """Sleep before the given overall attempt index (0 = no sleep)."""
        if attempt <= 0:
            return 0.0
        return min(self.retry_delay * self.backoff_multiplier ** attempt, self.max_delay)


@dataclass(frozen=True)
class ProviderSettings:
    """Per-vendor request and rate-limit settings."""
    timeout: float = 30.0
    max_requests: int = 100
    window_seconds: float = 60.0
    circuit_failure_threshold: int = 5
    circuit_reset_timeout: float = 30.0


# Request budgets per vendor (requests per window)
_PROVIDER_MAX_REQUESTS = {
    ProviderID.OPENAI: 100,
    ProviderID.AWS: 150,
    ProviderID.GOOGLE: 200,
}


def parse_provider_order(value: str) -> tuple[ProviderID, ...]:
    """Parse a comma separated provider list like "openai,aws,google"."""
    names = [part.strip().lower() for part in value.split(",") if part.strip()]
    try:
        return tuple(ProviderID(name) for name in names)
    except ValueError as e:
        raise ValueError(f"Unknown provider in order {value!r}: {e}") from e


def load_failover_config() -> FailoverConfig:
    """Build the failover policy from environment settings.

    Raises:
        ValueError: If any setting is out of range.
    """
    return FailoverConfig(
        provider_order=parse_provider_order(PROVIDER_ORDER),
        retry_attempts=RETRY_ATTEMPTS,
        retry_delay=RETRY_DELAY,
        backoff_multiplier=BACKOFF_MULTIPLIER,
        max_delay=MAX_DELAY,
        global_timeout=GLOBAL_TIMEOUT,
        min_confidence=MIN_CONFIDENCE,
        health_check=HealthCheckConfig(
            interval=HEALTH_CHECK_INTERVAL,
            timeout=HEALTH_CHECK_TIMEOUT,
        ),
        error_thresholds=ErrorThresholds(
            consecutive=ERROR_THRESHOLD_CONSECUTIVE,
            percentage=ERROR_THRESHOLD_PERCENTAGE,
            min_requests=ERROR_THRESHOLD_MIN_REQUESTS,
        ),
    )


def get_provider_settings(provider: ProviderID) -> ProviderSettings:
    """Get vendor settings, overridable per provider via env.

    e.g. OPENAI_TIMEOUT, AWS_MAX_REQUESTS, GOOGLE_WINDOW_SECONDS
    """
    prefix = provider.value.upper()
    return ProviderSettings(
        timeout=float(os.getenv(f"{prefix}_TIMEOUT", "30.0")),
        max_requests=int(
            os.getenv(f"{prefix}_MAX_REQUESTS", str(_PROVIDER_MAX_REQUESTS[provider]))
        ),
        window_seconds=float(os.getenv(f"{prefix}_WINDOW_SECONDS", "60.0")),
        circuit_failure_threshold=int(os.getenv(f"{prefix}_CIRCUIT_THRESHOLD", "5")),
        circuit_reset_timeout=float(os.getenv(f"{prefix}_CIRCUIT_RESET", "30.0")),
    )
