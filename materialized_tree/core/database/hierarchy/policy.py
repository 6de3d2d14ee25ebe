"""Per-model tree policy.

A policy is supplied to a tree repository at construction and decides
what happens to the descendants of a destroyed node and whether the
depth cache column is maintained.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Self

    from materialized_tree.core.settings.tree import TreeSettings


class OrphanStrategy(StrEnum):
    """What happens to descendants when their ancestor is destroyed."""

    DESTROY = "destroy"
    """Remove every descendant."""

    ROOTIFY = "rootify"
    """Immediate children become roots; deeper nesting is preserved."""

    RESTRICT = "restrict"
    """Refuse to destroy a node that has children."""


@dataclass(slots=True, frozen=True)
class TreePolicy:
    """Tree behaviour switches for one model.

    Attributes:
        orphan_strategy: Applied to the descendant set on destroy
        cache_depth: Maintain ``ancestry_depth`` and enable depth filters
    """

    orphan_strategy: OrphanStrategy = OrphanStrategy.DESTROY
    cache_depth: bool = False

    @classmethod
    def from_settings(cls, settings: TreeSettings | None = None) -> Self:
        """Build a policy from ``TREE_*`` settings.

        Args:
            settings: Explicit settings; the cached loader is used when None

        Example:
            policy = TreePolicy.from_settings(TreeSettings(cache_depth=True))
        """
        if settings is None:
            from materialized_tree.core.settings.loader import get_tree_settings

            settings = get_tree_settings()
        return cls(
            orphan_strategy=OrphanStrategy(settings.orphan_strategy),
            cache_depth=settings.cache_depth,
        )


__all__ = [
    "OrphanStrategy",
    "TreePolicy",
]
