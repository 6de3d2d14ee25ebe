"""Core database package: declarative base, repository and tree support.

Base Classes and Mixins:
    - Base: Declarative base with auto table naming
    - IntegerPKMixin, UUIDPKMixin: Primary key strategies
    - AncestryMixin, OrderedAncestryMixin: Materialized path tree nodes

Repository:
    - BaseRepository[T]: Generic CRUD plus atomic increments, explicit session passing
    - TreeRepository[T]: Reparenting, subtree cascades and orphan strategies
    - OrderedTreeRepository[T]: Dense sibling positions and sibling moves

Change Tracking:
    - get_original_value, is_new: ORM state helpers

Errors:
    - RepositoryError, NotFoundError
    - TreeError and its subclasses for tree operations
"""

from materialized_tree.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    UUIDPKMixin,
)
from materialized_tree.core.database.exceptions import (
    ConfigurationError,
    InvalidStateError,
    InvariantViolationError,
    NotFoundError,
    PathFormatError,
    PositionRangeError,
    RepositoryError,
    TreeError,
)
from materialized_tree.core.database.inspection import (
    get_original_value,
    is_new,
)
from materialized_tree.core.database.repository import BaseRepository
from materialized_tree.core.database.hierarchy import (  # noqa: I001
    AncestryMixin,
    AncestryPath,
    DepthQuery,
    MoveListenerRegistry,
    OrderedAncestryMixin,
    OrderedTreeRepository,
    OrphanStrategy,
    TreePolicy,
    TreeQuery,
    TreeRepository,
)

__all__ = [
    "NAMING_CONVENTION",
    "AncestryMixin",
    "AncestryPath",
    "Base",
    "BaseRepository",
    "ConfigurationError",
    "DepthQuery",
    "IntegerPKMixin",
    "InvalidStateError",
    "InvariantViolationError",
    "MoveListenerRegistry",
    "NotFoundError",
    "OrderedAncestryMixin",
    "OrderedTreeRepository",
    "OrphanStrategy",
    "PathFormatError",
    "PositionRangeError",
    "RepositoryError",
    "TreeError",
    "TreePolicy",
    "TreeQuery",
    "TreeRepository",
    "UUIDPKMixin",
    "get_original_value",
    "is_new",
]
