"""Composable tree queries with depth filtering.

``TreeQuery`` wraps a SQLAlchemy ``Select`` over one tree model together
with the model's ``TreePolicy``. Every filter returns a new query, so a
query can be shared and refined without side effects.

Depth filters compare against the cached ``ancestry_depth`` column and are
only available when the policy caches depth.

``DepthQuery`` additionally remembers a reference depth (the depth of the
node it was derived from) and resolves relative filters against it:

    descendants = await repo.descendants(node)  # reference = node.depth
    grandchildren = descendants.at_relative_depth(2)
    await grandchildren.all(session)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import func, select

from materialized_tree.core.database.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import Self

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from materialized_tree.core.database.hierarchy.policy import TreePolicy

T = TypeVar("T")


class TreeQuery(Generic[T]):
    """Immutable, lazily executed query over tree nodes.

    Example:
        >>> query = repo.query().at_depth(1)
        >>> nodes = await query.all(session)
        >>> total = await repo.query().roots().count(session)
    """

    __slots__ = ("_policy", "_statement", "model")

    def __init__(
        self,
        model: type[T],
        policy: TreePolicy,
        statement: Select[Any] | None = None,
    ) -> None:
        self.model = model
        self._policy = policy
        if statement is None:
            statement = select(model).order_by(*model.tree_order())
        self._statement = statement

    @property
    def statement(self) -> Select[Any]:
        """Underlying SQLAlchemy statement."""
        return self._statement

    @property
    def policy(self) -> TreePolicy:
        return self._policy

    def _derive(self, statement: Select[Any]) -> Self:
        return type(self)(self.model, self._policy, statement)

    def where(self, *criteria: ColumnElement[bool]) -> Self:
        """Add arbitrary WHERE criteria."""
        return self._derive(self._statement.where(*criteria))

    def roots(self) -> Self:
        """Restrict to root nodes. Works without depth caching."""
        return self.where(self.model.ancestry.is_(None))

    # ------------------------------------------------------------------
    # Absolute depth filters
    # ------------------------------------------------------------------

    def _depth_column(self, operation: str) -> Any:
        if not self._policy.cache_depth:
            raise ConfigurationError(
                "Depth filters require depth caching to be enabled",
                model_name=self.model.__name__,
                operation=operation,
            )
        return self.model.ancestry_depth

    def before_depth(self, depth: int) -> Self:
        """Nodes with depth < ``depth``."""
        return self.where(self._depth_column("before_depth") < depth)

    def to_depth(self, depth: int) -> Self:
        """Nodes with depth <= ``depth``."""
        return self.where(self._depth_column("to_depth") <= depth)

    def at_depth(self, depth: int) -> Self:
        """Nodes with depth == ``depth``."""
        return self.where(self._depth_column("at_depth") == depth)

    def from_depth(self, depth: int) -> Self:
        """Nodes with depth >= ``depth``."""
        return self.where(self._depth_column("from_depth") >= depth)

    def after_depth(self, depth: int) -> Self:
        """Nodes with depth > ``depth``."""
        return self.where(self._depth_column("after_depth") > depth)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def all(self, session: AsyncSession) -> Sequence[T]:
        result = await session.execute(self._statement)
        return result.scalars().all()

    async def first(self, session: AsyncSession) -> T | None:
        return await session.scalar(self._statement.limit(1))

    async def ids(self, session: AsyncSession) -> list[Any]:
        result = await session.execute(self._statement.with_only_columns(self.model.id))
        return list(result.scalars().all())

    async def count(self, session: AsyncSession) -> int:
        subquery = self._statement.order_by(None).subquery()
        return await session.scalar(select(func.count()).select_from(subquery)) or 0

    async def exists(self, session: AsyncSession) -> bool:
        return bool(await session.scalar(select(self._statement.order_by(None).exists())))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model.__name__})"


class DepthQuery(TreeQuery[T]):
    """Tree query annotated with the depth of a reference node.

    Relative filters translate to absolute ones at
    ``reference_depth + offset``. The reference depth never changes when
    filters are chained, so ``q.from_relative_depth(1).to_relative_depth(2)``
    keeps both bounds relative to the same node.
    """

    __slots__ = ("_reference_depth",)

    def __init__(
        self,
        model: type[T],
        policy: TreePolicy,
        statement: Select[Any] | None = None,
        *,
        reference_depth: int = 0,
    ) -> None:
        super().__init__(model, policy, statement)
        self._reference_depth = reference_depth

    @property
    def reference_depth(self) -> int:
        return self._reference_depth

    def _derive(self, statement: Select[Any]) -> Self:
        return type(self)(self.model, self._policy, statement, reference_depth=self._reference_depth)

    def before_relative_depth(self, offset: int) -> Self:
        return self.before_depth(self._reference_depth + offset)

    def to_relative_depth(self, offset: int) -> Self:
        return self.to_depth(self._reference_depth + offset)

    def at_relative_depth(self, offset: int) -> Self:
        return self.at_depth(self._reference_depth + offset)

    def from_relative_depth(self, offset: int) -> Self:
        return self.from_depth(self._reference_depth + offset)

    def after_relative_depth(self, offset: int) -> Self:
        return self.after_depth(self._reference_depth + offset)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model.__name__}, reference_depth={self._reference_depth})"


__all__ = [
    "DepthQuery",
    "TreeQuery",
]
