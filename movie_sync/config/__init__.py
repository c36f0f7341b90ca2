"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    CategoryTag,
    EnvironmentOverrides,
    ProviderConfig,
    ScheduleConfig,
    StoreBackend,
    StoreConfig,
    WorkerConfig,
)

__all__ = [
    "CategoryTag",
    "ConfigLocator",
    "ConfigRepository",
    "EnvironmentOverrides",
    "ProviderConfig",
    "ScheduleConfig",
    "StoreBackend",
    "StoreConfig",
    "WorkerConfig",
]
