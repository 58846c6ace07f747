"""Configuration module for Sortify."""

from .settings import (
    Config,
    WatcherConfig,
    OrganizationConfig,
    HistoryConfig,
    DEFAULT_CONFIG_PATH,
)
from .categories import (
    CategoryRules,
    DEFAULT_CATEGORIES,
    DEFAULT_FALLBACK_CATEGORY,
    normalize_extension,
)

__all__ = [
    "Config",
    "WatcherConfig",
    "OrganizationConfig",
    "HistoryConfig",
    "DEFAULT_CONFIG_PATH",
    "CategoryRules",
    "DEFAULT_CATEGORIES",
    "DEFAULT_FALLBACK_CATEGORY",
    "normalize_extension",
]
