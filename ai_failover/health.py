"""Provider health tracking.

Decides, per request, which providers may be attempted and in what order.
Each adapter judges its own health (breaker, limiter, error thresholds);
this module only polls them and applies the configured priority.
"""
import asyncio
from collections.abc import Mapping

import structlog

from .config import FailoverConfig
from .providers.base import ProviderAdapter, ProviderID, ProviderStatus

logger = structlog.get_logger()


class HealthTracker:
    """Polls adapter status and produces the ordered list of usable providers."""

    def __init__(
        self,
        adapters: Mapping[ProviderID, ProviderAdapter],
        config: FailoverConfig,
    ):
        self.adapters = dict(adapters)
        self.config = config
        self._last_known: dict[ProviderID, ProviderStatus] = {
            provider: ProviderStatus.UNAVAILABLE for provider in self.adapters
        }

    @property
    def last_known(self) -> dict[ProviderID, ProviderStatus]:
        """Statuses from the most recent poll (unavailable before the first)."""
        return dict(self._last_known)

    async def _poll_one(self, provider: ProviderID, adapter: ProviderAdapter) -> ProviderStatus:
        try:
            status = await asyncio.wait_for(
                adapter.get_status(), timeout=self.config.health_check.timeout
            )
            return ProviderStatus(status)
        except asyncio.TimeoutError:
            logger.warning(
                "health_check_timeout",
                provider=provider.value,
                timeout=self.config.health_check.timeout,
            )
        except Exception as e:
            logger.error("health_check_failed", provider=provider.value, error=str(e))
        return ProviderStatus.UNAVAILABLE

    async def snapshot(self) -> dict[ProviderID, ProviderStatus]:
        """Poll every adapter concurrently and return the full status map."""
        providers = list(self.adapters)
        statuses = await asyncio.gather(
            *(self._poll_one(p, self.adapters[p]) for p in providers)
        )
        result = dict(zip(providers, statuses))

        for provider, status in result.items():
            previous = self._last_known.get(provider)
            if previous is not None and previous != status:
                logger.info(
                    "provider_status_changed",
                    provider=provider.value,
                    previous=previous.value,
                    status=status.value,
                )
        self._last_known.update(result)
        return result

    def order(self, statuses: Mapping[ProviderID, ProviderStatus]) -> list[ProviderID]:
        """Available providers in configured priority order.

        Providers missing from `provider_order` are never used.
        """
        priority = {p: i for i, p in enumerate(self.config.provider_order)}
        eligible = [
            p
            for p, status in statuses.items()
            if status == ProviderStatus.AVAILABLE and p in priority
        ]
        return sorted(eligible, key=priority.__getitem__)

    async def available_providers(self) -> list[ProviderID]:
        """Fresh poll, filtered to `available`, sorted by priority."""
        return self.order(await self.snapshot())

    async def monitor(self) -> None:
        """Keep `last_known` fresh by polling every health-check interval.

        Runs until cancelled.
        """
        interval = self.config.health_check.interval
        logger.info("health_monitor_started", interval=interval)
        try:
            while True:
                await self.snapshot()
                await asyncio.sleep(interval)
        finally:
            logger.info("health_monitor_stopped")
