"""Pytest configuration and fixtures"""
import io

import pytest
from PIL import Image

from ai_failover.config import FailoverConfig
from ai_failover.orchestrator import FailoverOrchestrator
from ai_failover.providers import MockProvider, ProviderID
from ai_failover.services.metrics import MetricsCollector


@pytest.fixture
def config():
    """Failover policy with the documented defaults."""
    return FailoverConfig(
        provider_order=("openai", "aws", "google"),
        retry_delay=1.0,
        backoff_multiplier=1.5,
        max_delay=30.0,
        global_timeout=5.0,
        min_confidence=0.98,
    )


@pytest.fixture
def sleeps():
    """Backoff delays requested by the orchestrator, in order."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    """Sleep replacement that records the delay and returns immediately."""
    async def _sleep(delay):
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def providers():
    """One healthy mock per vendor."""
    return {
        ProviderID.OPENAI: MockProvider(ProviderID.OPENAI),
        ProviderID.AWS: MockProvider(ProviderID.AWS),
        ProviderID.GOOGLE: MockProvider(ProviderID.GOOGLE),
    }


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def orchestrator(providers, config, metrics, fake_sleep):
    """Orchestrator over the mock providers with recorded backoff."""
    return FailoverOrchestrator(providers, config, metrics=metrics, sleep=fake_sleep)


@pytest.fixture
def image_bytes():
    """A small valid JPEG."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 64), color=(120, 160, 200)).save(buffer, format="JPEG")
    return buffer.getvalue()
