"""Tests for configuration loading and validation."""
import pytest

from ai_failover import config as config_module
from ai_failover.config import (
    FailoverConfig,
    ProviderSettings,
    get_provider_settings,
    load_failover_config,
    parse_provider_order,
)
from ai_failover.providers import ProviderID


class TestFailoverConfig:
    def test_defaults(self):
        config = FailoverConfig()
        assert config.provider_order == (ProviderID.OPENAI, ProviderID.AWS, ProviderID.GOOGLE)
        assert config.retry_attempts == 3
        assert config.min_confidence == 0.98
        assert config.global_timeout == 60.0
        assert config.error_thresholds.consecutive == 5
        assert config.error_thresholds.percentage == 20.0

    def test_string_order_coerced(self):
        config = FailoverConfig(provider_order=["aws", "google"])
        assert config.provider_order == (ProviderID.AWS, ProviderID.GOOGLE)

    def test_is_frozen(self):
        config = FailoverConfig()
        with pytest.raises(AttributeError):
            config.retry_attempts = 10

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"provider_order": ("aws", "aws")},
            {"provider_order": ("azure",)},
            {"retry_attempts": 0},
            {"retry_delay": -1.0},
            {"backoff_multiplier": 0.5},
            {"global_timeout": 0},
            {"min_confidence": 1.5},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            FailoverConfig(**kwargs)


class TestBackoffDelay:
    def test_first_attempt_has_no_delay(self):
        assert FailoverConfig().backoff_delay(0) == 0.0

    def test_grows_with_attempt(self):
        config = FailoverConfig(retry_delay=1.0, backoff_multiplier=1.5, max_delay=30.0)
        delays = [config.backoff_delay(i) for i in range(1, 5)]

        assert delays == pytest.approx([1.5, 2.25, 3.375, 5.0625])
        assert delays == sorted(delays)

    def test_capped_at_max_delay(self):
        config = FailoverConfig(retry_delay=1.0, backoff_multiplier=2.0, max_delay=5.0)
        assert config.backoff_delay(10) == 5.0


class TestParseProviderOrder:
    def test_parses_and_normalizes(self):
        assert parse_provider_order(" OpenAI , google ") == (ProviderID.OPENAI, ProviderID.GOOGLE)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            parse_provider_order("openai,azure")


class TestLoadFailoverConfig:
    def test_reads_module_settings(self, monkeypatch):
        monkeypatch.setattr(config_module, "PROVIDER_ORDER", "google,openai")
        monkeypatch.setattr(config_module, "RETRY_ATTEMPTS", 2)
        monkeypatch.setattr(config_module, "MIN_CONFIDENCE", 0.9)

        config = load_failover_config()

        assert config.provider_order == (ProviderID.GOOGLE, ProviderID.OPENAI)
        assert config.retry_attempts == 2
        assert config.min_confidence == 0.9


class TestProviderSettings:
    def test_vendor_defaults(self, monkeypatch):
        for name in ("OPENAI_MAX_REQUESTS", "AWS_MAX_REQUESTS", "GOOGLE_MAX_REQUESTS"):
            monkeypatch.delenv(name, raising=False)

        assert get_provider_settings(ProviderID.OPENAI).max_requests == 100
        assert get_provider_settings(ProviderID.AWS).max_requests == 150
        assert get_provider_settings(ProviderID.GOOGLE).max_requests == 200

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("AWS_TIMEOUT", "12.5")
        monkeypatch.setenv("AWS_CIRCUIT_THRESHOLD", "3")

        settings = get_provider_settings(ProviderID.AWS)

        assert settings.timeout == 12.5
        assert settings.circuit_failure_threshold == 3
        assert settings.window_seconds == ProviderSettings().window_seconds
