"""Multi-provider AI image analysis with automatic failover."""
from .config import FailoverConfig, load_failover_config
from .errors import (
    AllProvidersFailedError,
    FailoverError,
    GlobalTimeoutError,
    NoProvidersAvailableError,
    ProviderError,
)
from .orchestrator import FailoverOrchestrator

__all__ = [
    "AllProvidersFailedError",
    "FailoverConfig",
    "FailoverError",
    "FailoverOrchestrator",
    "GlobalTimeoutError",
    "NoProvidersAvailableError",
    "ProviderError",
    "load_failover_config",
]
