"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from materialized_tree.core.settings.loader import get_tree_settings

    settings = get_tree_settings()  # First call: loads and validates
    settings = get_tree_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_tree_settings.cache_clear()

    Or pass explicit values instead:
    TreePolicy.from_settings(TreeSettings(cache_depth=True))
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .tree import TreeSettings


@lru_cache(maxsize=1)
def get_tree_settings() -> TreeSettings:
    """Get cached tree policy settings.

    Returns:
        Validated and frozen TreeSettings instance.
    """
    return TreeSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_caches() -> None:
    """Clear all settings caches (useful for testing)."""
    get_tree_settings.cache_clear()
    get_logging_settings.cache_clear()


__all__ = [
    "clear_all_caches",
    "get_logging_settings",
    "get_tree_settings",
]
