"""Tests for the error taxonomy."""
from ai_failover.errors import (
    AllProvidersFailedError,
    CircuitOpenError,
    FailoverError,
    GlobalTimeoutError,
    NoProvidersAvailableError,
    ProviderError,
    RateLimitedError,
    ValidationFailedError,
)
from ai_failover.providers import ProviderID, ProviderStatus


class TestPerAttemptErrors:
    def test_kinds(self):
        assert ProviderError.kind == "provider_error"
        assert RateLimitedError.kind == "rate_limited"
        assert CircuitOpenError.kind == "circuit_open"
        assert ValidationFailedError.kind == "validation"

    def test_message_names_provider(self):
        error = RateLimitedError(ProviderID.AWS, "slow down", "analyze")
        assert str(error) == "aws: slow down"
        assert error.provider == ProviderID.AWS
        assert error.operation == "analyze"
        assert isinstance(error, ProviderError)

    def test_validation_reasons(self):
        error = ValidationFailedError(ProviderID.GOOGLE, ["low confidence", "no tags"])
        assert error.reasons == ["low confidence", "no tags"]
        assert str(error) == "google: result rejected: low confidence; no tags"


class TestFatalErrors:
    def test_no_providers_lists_statuses(self):
        error = NoProvidersAvailableError({
            ProviderID.OPENAI: ProviderStatus.DEGRADED,
            ProviderID.AWS: ProviderStatus.UNAVAILABLE,
        })
        assert str(error) == "No AI providers available (openai=degraded, aws=unavailable)"

    def test_all_failed_carries_last_error(self):
        cause = ProviderError(ProviderID.GOOGLE, "boom")
        error = AllProvidersFailedError(cause, attempts=3)

        assert error.last_error is cause
        assert str(error) == "All providers failed after 3 attempt(s): google: boom"

    def test_global_timeout(self):
        error = GlobalTimeoutError(5.0, attempts=2)
        assert error.timeout == 5.0
        assert "5.0s" in str(error)

    def test_fatal_errors_are_not_provider_errors(self):
        for error in (
            NoProvidersAvailableError(),
            AllProvidersFailedError(None, 0),
            GlobalTimeoutError(1.0, 0),
        ):
            assert isinstance(error, FailoverError)
            assert not isinstance(error, ProviderError)
