"""Materialized path trees on plain relational rows.

Each node stores the ids of all its ancestors in one ``ancestry`` string
column ("1/4/9"). Subtree lookups are prefix matches on that column, so
any database SQLAlchemy supports works; no tree extension is required.

Components:
    - AncestryPath: Codec and Python-side path arithmetic
    - AncestryMixin / OrderedAncestryMixin: Columns and navigation for models
    - TreePolicy / OrphanStrategy: Per-model behaviour switches
    - TreeQuery / DepthQuery: Composable queries with depth filters
    - MoveListenerRegistry: Veto or observe parent assignments
    - TreeRepository / OrderedTreeRepository: Reparenting with subtree
      cascades, orphan handling on destroy, dense sibling ordering

Example:
    >>> from materialized_tree.core.database import Base, IntegerPKMixin
    >>> from materialized_tree.core.database.hierarchy import (
    ...     OrderedAncestryMixin,
    ...     OrderedTreeRepository,
    ...     TreePolicy,
    ... )
    >>>
    >>> class Category(Base, IntegerPKMixin, OrderedAncestryMixin):
    ...     __tablename__ = "categories"
    ...     name: Mapped[str] = mapped_column(String(255))
    >>>
    >>> repo = OrderedTreeRepository(Category, policy=TreePolicy(cache_depth=True))
    >>> root = await repo.create(session, Category(name="root"))
    >>> child = Category(name="child")
    >>> repo.set_parent(child, root)
    >>> await repo.save(session, child)
    >>> await repo.descendants(root).at_relative_depth(1).all(session)
"""

from materialized_tree.core.database.hierarchy.depth import DepthQuery, TreeQuery
from materialized_tree.core.database.hierarchy.listeners import (
    BaseMoveListener,
    MoveListener,
    MoveListenerRegistry,
)
from materialized_tree.core.database.hierarchy.mixins import (
    AncestryMixin,
    OrderedAncestryMixin,
)
from materialized_tree.core.database.hierarchy.ordered import OrderedTreeRepository
from materialized_tree.core.database.hierarchy.path import (
    SEPARATOR,
    AncestryPath,
    decode_ancestry,
    encode_ancestry,
)
from materialized_tree.core.database.hierarchy.policy import OrphanStrategy, TreePolicy
from materialized_tree.core.database.hierarchy.repository import TreeRepository

__all__ = [
    "SEPARATOR",
    "AncestryMixin",
    "AncestryPath",
    "BaseMoveListener",
    "DepthQuery",
    "MoveListener",
    "MoveListenerRegistry",
    "OrderedAncestryMixin",
    "OrderedTreeRepository",
    "OrphanStrategy",
    "TreePolicy",
    "TreeQuery",
    "TreeRepository",
    "decode_ancestry",
    "encode_ancestry",
]
