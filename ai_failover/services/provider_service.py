"""Provider wiring - builds one adapter per vendor and the orchestrator."""

import structlog

from .. import config
from ..config import FailoverConfig, get_provider_settings, load_failover_config
from ..orchestrator import FailoverOrchestrator
from ..providers import (
    AWSRekognitionProvider,
    GoogleVisionProvider,
    MockProvider,
    OpenAIProvider,
    ProviderAdapter,
    ProviderID,
)
from .metrics import MetricsCollector

logger = structlog.get_logger()


def _openai_adapter(failover: FailoverConfig) -> ProviderAdapter:
    from openai import AsyncOpenAI

    settings = get_provider_settings(ProviderID.OPENAI)
    logger.info("initializing_openai_provider", model=config.OPENAI_MODEL)
    return OpenAIProvider(
        client=AsyncOpenAI(api_key=config.OPENAI_API_KEY, timeout=settings.timeout),
        model=config.OPENAI_MODEL,
        settings=settings,
        thresholds=failover.error_thresholds,
        min_confidence=failover.min_confidence,
    )


def _aws_adapter(failover: FailoverConfig) -> ProviderAdapter:
    import boto3

    logger.info("initializing_aws_provider", region=config.AWS_REGION)
    return AWSRekognitionProvider(
        client=boto3.client("rekognition", region_name=config.AWS_REGION),
        settings=get_provider_settings(ProviderID.AWS),
        thresholds=failover.error_thresholds,
        min_confidence=failover.min_confidence,
    )


def _google_adapter(failover: FailoverConfig) -> ProviderAdapter:
    from google.cloud import vision

    logger.info("initializing_google_provider")
    return GoogleVisionProvider(
        client=vision.ImageAnnotatorClient(),
        settings=get_provider_settings(ProviderID.GOOGLE),
        thresholds=failover.error_thresholds,
        min_confidence=failover.min_confidence,
    )


_FACTORIES = {
    ProviderID.OPENAI: (lambda: config.OPENAI_API_KEY, _openai_adapter, "OPENAI_API_KEY"),
    ProviderID.AWS: (lambda: config.AWS_ACCESS_KEY_ID, _aws_adapter, "AWS_ACCESS_KEY_ID"),
    ProviderID.GOOGLE: (
        lambda: config.GOOGLE_APPLICATION_CREDENTIALS,
        _google_adapter,
        "GOOGLE_APPLICATION_CREDENTIALS",
    ),
}


def build_adapters(
    failover: FailoverConfig, use_mocks: bool | None = None
) -> dict[ProviderID, ProviderAdapter]:
    """Create one adapter per provider in the configured order.

    Providers whose credentials are missing are left out, so they can never
    answer for a vendor that is not there. With `use_mocks` (defaults to
    FAILOVER_USE_MOCKS) every provider is a MockProvider instead.
    """
    if use_mocks is None:
        use_mocks = config.USE_MOCKS
    if use_mocks:
        logger.warning("using_mock_providers", providers=[p.value for p in failover.provider_order])
        return {provider: MockProvider(provider) for provider in failover.provider_order}

    adapters: dict[ProviderID, ProviderAdapter] = {}
    for provider in failover.provider_order:
        credentials, factory, env_name = _FACTORIES[provider]
        if credentials():
            adapters[provider] = factory(failover)
        else:
            logger.warning(
                "credentials_not_found_skipping_provider",
                provider=provider.value,
                expected_env=env_name,
            )

    if not adapters:
        logger.error(
            "no_providers_configured",
            hint="set vendor credentials or FAILOVER_USE_MOCKS=true",
        )
    return adapters


def build_orchestrator(
    failover: FailoverConfig | None = None,
    metrics: MetricsCollector | None = None,
    use_mocks: bool | None = None,
) -> FailoverOrchestrator:
    """Build an orchestrator wired from environment settings."""
    failover = failover or load_failover_config()
    return FailoverOrchestrator(
        adapters=build_adapters(failover, use_mocks=use_mocks),
        config=failover,
        metrics=metrics or MetricsCollector(),
    )
