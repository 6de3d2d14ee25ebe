"""Tree policy defaults.

Repositories constructed without an explicit ``TreePolicy`` take their
defaults from here.

Environment variables use TREE_ prefix.
Example: TREE_ORPHAN_STRATEGY=rootify, TREE_CACHE_DEPTH=true
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OrphanStrategyName = Literal["destroy", "rootify", "restrict"]


class TreeSettings(BaseSettings):
    """Default tree policy settings.

    Attributes:
        orphan_strategy: What happens to descendants of a destroyed node.
        cache_depth: Maintain the ``ancestry_depth`` column and allow depth filters.
    """

    orphan_strategy: OrphanStrategyName = Field(
        default="destroy",
        description="Orphan strategy applied on destroy (destroy|rootify|restrict)",
    )
    cache_depth: bool = Field(
        default=False,
        description="Cache node depth in ancestry_depth for depth filtering",
    )

    @field_validator("orphan_strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v: str) -> str:
        """Normalize strategy name to lowercase."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    model_config = SettingsConfigDict(
        env_prefix="TREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
