"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    CacheConfig,
    FeedSourceConfig,
    FlattenConfig,
    GlobalConfig,
    SearchConfig,
)

__all__ = [
    "CacheConfig",
    "ConfigLocator",
    "ConfigRepository",
    "FeedSourceConfig",
    "FlattenConfig",
    "GlobalConfig",
    "SearchConfig",
]
