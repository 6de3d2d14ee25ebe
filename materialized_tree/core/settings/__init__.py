"""Pydantic Settings v2 configuration.

Settings are split by concern and read from the environment:
- TREE_* for default tree policy (orphan strategy, depth caching)
- LOG_* for logging

Import settings via cached loaders:
    from materialized_tree.core.settings import get_tree_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .loader import clear_all_caches, get_logging_settings, get_tree_settings
from .logs import LoggingSettings
from .tree import TreeSettings

__all__ = [
    "LoggingSettings",
    "TreeSettings",
    "clear_all_caches",
    "get_logging_settings",
    "get_tree_settings",
]
