"""Service layer for metrics and provider wiring."""
from .metrics import MetricsCollector, ProviderMetrics

__all__ = [
    "MetricsCollector",
    "ProviderMetrics",
    "build_adapters",
    "build_orchestrator",
]


def __getattr__(name):
    """Lazy import to avoid circular dependencies."""
    if name == "build_adapters":
        from .provider_service import build_adapters

        return build_adapters
    if name == "build_orchestrator":
        from .provider_service import build_orchestrator

        return build_orchestrator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
