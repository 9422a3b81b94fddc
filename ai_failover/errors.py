"""Error taxonomy for the failover orchestrator.

Per-attempt errors (ProviderError and subclasses) are absorbed inside the
failover loop. Only the three fatal kinds ever reach callers:
NoProvidersAvailableError, AllProvidersFailedError and GlobalTimeoutError.
"""


class FailoverError(Exception):
    """Base class for every error raised by this package."""


# =============================================================================
# Per-attempt (recoverable) errors
# =============================================================================

class ProviderError(FailoverError):
    """A single vendor call failed (network, auth, malformed response)."""

    kind = "provider_error"

    def __init__(self, provider, message: str, operation: str | None = None):
        self.provider = provider
        self.operation = operation
        super().__init__(f"{_provider_name(provider)}: {message}")


class RateLimitedError(ProviderError):
    """The vendor (or our own limiter for it) reported throttling."""

    kind = "rate_limited"


class ProviderTimeoutError(ProviderError):
    """The vendor call exceeded its own request timeout."""

    kind = "timeout"


class CircuitOpenError(ProviderError):
    """The adapter's circuit breaker is open and rejected the call."""

    kind = "circuit_open"


class ValidationFailedError(ProviderError):
    """The vendor call succeeded but the result was not good enough."""

    kind = "validation"

    def __init__(self, provider, reasons: list[str], operation: str | None = None):
        self.reasons = list(reasons)
        super().__init__(provider, "result rejected: " + "; ".join(reasons), operation)


# =============================================================================
# Fatal errors (cross the orchestrator boundary)
# =============================================================================

class NoProvidersAvailableError(FailoverError):
    """No provider currently reports `available`; nothing was attempted."""

    def __init__(self, statuses: dict | None = None):
        self.statuses = dict(statuses or {})
        detail = ", ".join(
            f"{_provider_name(p)}={_provider_name(s)}" for p, s in self.statuses.items()
        )
        message = "No AI providers available"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class AllProvidersFailedError(FailoverError):
    """Every available provider was tried and none produced a validated result."""

    def __init__(self, last_error: Exception | None, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        message = f"All providers failed after {attempts} attempt(s)"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class GlobalTimeoutError(FailoverError):
    """The wall-clock budget for the whole request was exceeded."""

    def __init__(self, timeout: float, attempts: int):
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f"Analysis exceeded global timeout of {timeout}s after {attempts} attempt(s)"
        )


def _provider_name(value) -> str:
    return getattr(value, "value", str(value))
