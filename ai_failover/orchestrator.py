"""Multi-provider failover orchestrator.

Sends one image to one vendor at a time, in priority order, until a
result passes validation. Callers only ever see a validated result or one
of three fatal errors; which vendors failed along the way is visible only
through metrics, logs and the status endpoint.
"""
import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass

import structlog

from .config import FailoverConfig
from .errors import (
    AllProvidersFailedError,
    GlobalTimeoutError,
    NoProvidersAvailableError,
    ProviderError,
    ProviderTimeoutError,
    ValidationFailedError,
)
from .health import HealthTracker
from .providers.base import (
    AnalysisRequest,
    AnalysisResult,
    AnalysisType,
    FaceDetectionResult,
    ProviderAdapter,
    ProviderID,
    ProviderStatus,
)
from .services.metrics import MetricsCollector
from .validation import validate_result

logger = structlog.get_logger()

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class _AttemptLog:
    """Progress of one request, readable after the loop is cancelled."""
    attempts: int = 0
    last_error: Exception | None = None
    # (provider, attempt index, start time) of the call awaiting a vendor
    in_flight: tuple[ProviderID, int, float] | None = None


def _index_adapters(
    adapters: Mapping[ProviderID, ProviderAdapter] | Iterable[ProviderAdapter],
) -> dict[ProviderID, ProviderAdapter]:
    if isinstance(adapters, Mapping):
        indexed = {}
        for provider, adapter in adapters.items():
            provider = ProviderID(provider)
            if adapter.provider_id != provider:
                raise ValueError(
                    f"Adapter for {adapter.provider_id.value} registered as {provider.value}"
                )
            indexed[provider] = adapter
        return indexed

    indexed = {}
    for adapter in adapters:
        if adapter.provider_id in indexed:
            raise ValueError(f"Duplicate adapter for {adapter.provider_id.value}")
        indexed[adapter.provider_id] = adapter
    return indexed


class FailoverOrchestrator:
    """Runs analysis requests across providers with failover and backoff."""

    def __init__(
        self,
        adapters: Mapping[ProviderID, ProviderAdapter] | Iterable[ProviderAdapter],
        config: FailoverConfig,
        metrics: MetricsCollector | None = None,
        health: HealthTracker | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Create an orchestrator.

        Args:
            adapters: One adapter per provider (mapping or iterable).
            config: Failover policy.
            metrics: Shared collector; a private one is created if omitted.
            health: Health tracker; built from adapters and config if omitted.
            sleep: Coroutine used for backoff delays.
        """
        self.adapters = _index_adapters(adapters)
        self.config = config
        self.metrics = metrics or MetricsCollector()
        self.health = health or HealthTracker(self.adapters, config)
        self._sleep = sleep

    async def analyze_image(
        self, image: bytes, analysis_type: AnalysisType | str
    ) -> AnalysisResult:
        """Analyze an image with the first provider that yields a valid result.

        Raises:
            NoProvidersAvailableError: No provider is currently available.
            AllProvidersFailedError: Every available provider failed.
            GlobalTimeoutError: The request exceeded the global timeout.
        """
        request = AnalysisRequest(image=image, analysis_type=analysis_type)
        return await self._run(
            "analyze",
            lambda adapter: adapter.analyze(request.image, request.analysis_type),
            AnalysisResult,
            analysis_type=request.analysis_type,
        )

    async def detect_faces(self, image: bytes) -> FaceDetectionResult:
        """Detect faces with the first provider that yields a valid result.

        Same error contract as analyze_image.
        """
        request = AnalysisRequest(image=image, analysis_type=AnalysisType.FACE)
        return await self._run(
            "detect_faces",
            lambda adapter: adapter.detect_faces(request.image),
            FaceDetectionResult,
        )

    async def process(self, request: AnalysisRequest) -> AnalysisResult | FaceDetectionResult:
        """Dispatch a request: FACE goes to face detection, the rest to analysis."""
        if request.analysis_type == AnalysisType.FACE:
            return await self.detect_faces(request.image)
        return await self.analyze_image(request.image, request.analysis_type)

    async def get_provider_status(self) -> dict[ProviderID, ProviderStatus]:
        """Fresh status snapshot of every configured provider."""
        return await self.health.snapshot()

    async def _run(
        self,
        operation: str,
        invoke: Callable[[ProviderAdapter], Awaitable],
        result_type: type,
        analysis_type: AnalysisType | None = None,
    ):
        request_started = time.perf_counter()
        log = _AttemptLog()
        try:
            result = await asyncio.wait_for(
                self._select_and_run(operation, invoke, result_type, log),
                timeout=self.config.global_timeout,
            )
        except asyncio.TimeoutError as e:
            self._abandon_in_flight(operation, log)
            self.metrics.record_request("timeout")
            logger.error(
                "global_timeout_exceeded",
                operation=operation,
                analysis_type=analysis_type.value if analysis_type else None,
                timeout=self.config.global_timeout,
                attempts=log.attempts,
                last_error=str(log.last_error) if log.last_error else None,
            )
            raise GlobalTimeoutError(self.config.global_timeout, log.attempts) from e
        except NoProvidersAvailableError as e:
            self.metrics.record_request("no_providers")
            logger.error(
                "no_providers_available",
                operation=operation,
                statuses={p.value: s.value for p, s in e.statuses.items()},
            )
            raise
        except AllProvidersFailedError:
            self.metrics.record_request("all_failed")
            logger.error(
                "all_providers_failed",
                operation=operation,
                analysis_type=analysis_type.value if analysis_type else None,
                attempts=log.attempts,
                duration_ms=round((time.perf_counter() - request_started) * 1000, 1),
                last_error=str(log.last_error) if log.last_error else None,
            )
            raise

        self.metrics.record_request("success")
        logger.info(
            "analysis_succeeded",
            operation=operation,
            provider=result.provider.value,
            analysis_type=analysis_type.value if analysis_type else None,
            attempts=log.attempts,
            duration_ms=round((time.perf_counter() - request_started) * 1000, 1),
        )
        return result

    async def _select_and_run(
        self,
        operation: str,
        invoke: Callable[[ProviderAdapter], Awaitable],
        result_type: type,
        log: _AttemptLog,
    ):
        """Poll health, then fail over across what is available.

        Runs inside the global timeout, health poll included.
        """
        statuses = await self.health.snapshot()
        providers = self.health.order(statuses)
        if not providers:
            raise NoProvidersAvailableError(statuses)

        if len(providers) > self.config.retry_attempts:
            logger.debug(
                "attempts_capped",
                operation=operation,
                available=[p.value for p in providers],
                retry_attempts=self.config.retry_attempts,
            )
            providers = providers[: self.config.retry_attempts]

        return await self._failover_loop(operation, providers, invoke, result_type, log)

    async def _failover_loop(
        self,
        operation: str,
        providers: list[ProviderID],
        invoke: Callable[[ProviderAdapter], Awaitable],
        result_type: type,
        log: _AttemptLog,
    ):
        attempt = 0
        for provider in providers:
            if attempt > 0:
                delay = self.config.backoff_delay(attempt)
                logger.debug("failover_backoff", attempt=attempt, delay=delay, next_provider=provider.value)
                await self._sleep(delay)

            adapter = self.adapters[provider]
            log.attempts = attempt + 1
            started = time.perf_counter()
            log.in_flight = (provider, attempt, started)
            try:
                result = await invoke(adapter)
            except Exception as e:
                error = e if isinstance(e, ProviderError) else ProviderError(
                    provider, f"{type(e).__name__}: {e}", operation
                )
                if error is not e:
                    error.__cause__ = e
                log.in_flight = None
                self._record_failure(provider, operation, attempt, started, error)
                log.last_error = error
                attempt += 1
                continue

            log.in_flight = None
            reasons = self._check(result, provider, result_type)
            if reasons:
                error = ValidationFailedError(provider, reasons, operation)
                self._record_failure(provider, operation, attempt, started, error)
                log.last_error = error
                attempt += 1
                continue

            latency_ms = (time.perf_counter() - started) * 1000
            self.metrics.record_success(provider, latency_ms)
            return result

        raise AllProvidersFailedError(log.last_error, attempt)

    def _check(self, result, provider: ProviderID, result_type: type) -> list[str]:
        if not isinstance(result, result_type):
            return [f"unexpected result type {type(result).__name__}"]
        reasons = list(validate_result(result, self.config).reasons)
        if result.provider != provider:
            reasons.append(f"result reported provider {result.provider!r}")
        return reasons

    def _record_failure(
        self,
        provider: ProviderID,
        operation: str,
        attempt: int,
        started: float,
        error: ProviderError,
    ) -> None:
        duration_ms = (time.perf_counter() - started) * 1000
        self.metrics.record_failure(provider, duration_ms, error)
        logger.warning(
            "provider_attempt_failed",
            provider=provider.value,
            operation=operation,
            attempt=attempt,
            duration_ms=round(duration_ms, 1),
            kind=error.kind,
            error=str(error),
        )

    def _abandon_in_flight(self, operation: str, log: _AttemptLog) -> None:
        """Count the attempt cut off by the global timeout as a timeout failure.

        Its result, if the vendor ever answers, is discarded with the task.
        """
        if log.in_flight is None:
            return
        provider, attempt, started = log.in_flight
        log.in_flight = None
        error = ProviderTimeoutError(provider, "attempt abandoned at global timeout", operation)
        self._record_failure(provider, operation, attempt, started, error)
        log.last_error = error
