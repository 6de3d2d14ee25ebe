"""Mixins for models stored as a materialized path tree.

Each row keeps the ids of all its ancestors in one ``ancestry`` column.
The mixins add the columns, path-derived properties that do not touch
the database, and statement builders plus async getters for tree
navigation. Mutations (reparenting, saving with cascades, destroying
with an orphan strategy, sibling moves) live on the tree repositories.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar, cast

from sqlalchemy import Integer, Text, event, func, or_, select
from sqlalchemy.orm import Mapped, mapped_column

from materialized_tree.core.database.exceptions import InvalidStateError
from materialized_tree.core.database.hierarchy.path import SEPARATOR, AncestryPath
from materialized_tree.core.database.inspection import get_original_value, is_new

if TYPE_CHECKING:
    from typing import Self

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession

# Instance __dict__ key holding the ancestry as of the last load or tree save
_PERSISTED_ANCESTRY = "_persisted_ancestry"


def _record_persisted_ancestry(target: Any) -> None:
    target.__dict__[_PERSISTED_ANCESTRY] = target.__dict__.get("ancestry")


class AncestryMixin:
    """Mixin for models with a materialized ancestry path.

    Provides:
        ancestry: Encoded ancestor ids, ``None`` for roots (indexed)
        ancestry_depth: Cached depth, maintained when the policy caches depth

    The model also needs an ``id`` primary key (see ``IntegerPKMixin`` and
    ``UUIDPKMixin``). Set ``__ancestry_id_parser__`` to the callable that
    turns an encoded segment back into an id; it defaults to ``int``.

    Example:
        >>> class Category(Base, IntegerPKMixin, AncestryMixin):
        ...     __tablename__ = "categories"
        ...     name: Mapped[str] = mapped_column(String(255))
        >>>
        >>> # Path-derived properties (no queries)
        >>> laptops.ancestor_ids
        [1, 4]
        >>> laptops.parent_id
        4
        >>>
        >>> # Navigation (queries)
        >>> children = await laptops.get_children(session)
        >>> parent = await laptops.get_parent(session)

    Note:
        - Navigation reads the store; nothing is cached on the instance
        - ``child_ancestry`` is built from the ancestry as of the last
          load or tree save, so queries for a node's subtree keep matching
          rows until a pending reparent is saved
    """

    __allow_unmapped__ = True

    __ancestry_id_parser__: ClassVar[Callable[[str], Any]] = int

    ancestry: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        index=True,
        default=None,
        active_history=True,
        comment="Ancestor ids from root to parent, '/'-separated",
    )
    ancestry_depth: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Cached number of ancestors",
    )

    # ------------------------------------------------------------------
    # Path-derived properties (no queries)
    # ------------------------------------------------------------------

    @property
    def ancestry_path(self) -> AncestryPath:
        """Decoded in-memory ancestry."""
        return AncestryPath.decode(self.ancestry, type(self).__ancestry_id_parser__)

    @ancestry_path.setter
    def ancestry_path(self, value: AncestryPath) -> None:
        self.ancestry = AncestryPath(value).encode()

    @property
    def ancestor_ids(self) -> list[Any]:
        """Ids of all ancestors, root first.

        Example:
            >>> node.ancestry = "1/4"
            >>> node.ancestor_ids
            [1, 4]
        """
        return self.ancestry_path.ids

    @property
    def depth(self) -> int:
        """Number of ancestors (0 for roots)."""
        return len(self.ancestor_ids)

    @property
    def ancestors_and_self_ids(self) -> list[Any]:
        return [*self.ancestor_ids, self.id]

    @property
    def parent_id(self) -> Any | None:
        """Id of the immediate parent, None for roots."""
        return self.ancestry_path.parent_id

    @property
    def root_id(self) -> Any:
        """Id of the root of this node's tree (own id for roots)."""
        path = self.ancestry_path
        return path.root_id if path else self.id

    @property
    def is_root(self) -> bool:
        """Check if this node has no ancestors."""
        return not self.ancestry

    @property
    def persisted_ancestry(self) -> str | None:
        """Encoded ancestry as of the last load or tree save.

        A staged reparent may reach the table early through autoflush while
        descendants still carry the old prefix. This value only moves when
        the node is loaded, refreshed, inserted or saved by a tree repository.
        """
        if _PERSISTED_ANCESTRY in self.__dict__:
            return self.__dict__[_PERSISTED_ANCESTRY]
        return get_original_value(self, "ancestry")

    def mark_ancestry_persisted(self) -> None:
        """Record the in-memory ancestry as the persisted one."""
        _record_persisted_ancestry(self)

    @property
    def child_ancestry_path(self) -> AncestryPath:
        """Ancestry every child of this node carries.

        Built from the ancestry as of the last load or tree save plus this node's id.

        Raises:
            InvalidStateError: If the node was never persisted
        """
        if is_new(self) or self.id is None:
            raise InvalidStateError(
                "No child ancestry for a node that was never persisted",
                model_name=type(self).__name__,
                operation="child_ancestry",
            )
        persisted = AncestryPath.decode(
            self.persisted_ancestry,
            type(self).__ancestry_id_parser__,
        )
        return persisted.child(self.id)

    @property
    def child_ancestry(self) -> str:
        """Encoded form of ``child_ancestry_path``."""
        # never None: holds at least this node's id
        return cast("str", self.child_ancestry_path.encode())

    def is_sibling_of(self, other: AncestryMixin) -> bool:
        return self.parent_id == other.parent_id

    def is_ancestor_of(self, other: AncestryMixin) -> bool:
        return self.id in other.ancestor_ids

    def is_descendant_of(self, other: AncestryMixin) -> bool:
        return other.id in self.ancestor_ids

    # ------------------------------------------------------------------
    # Statement builders
    # ------------------------------------------------------------------

    @classmethod
    def ancestry_is(cls, value: str | None) -> ColumnElement[bool]:
        """Match rows whose encoded ancestry equals ``value`` (``IS NULL`` for roots)."""
        if value is None:
            return cls.ancestry.is_(None)
        return cls.ancestry == value

    @classmethod
    def tree_order(cls) -> tuple[Any, ...]:
        """Default result order for tree queries."""
        return (cls.id,)

    @classmethod
    def subtree_condition(cls, child_ancestry: str) -> ColumnElement[bool]:
        """Match every row below the node whose child ancestry is given."""
        return or_(
            cls.ancestry == child_ancestry,
            cls.ancestry.startswith(child_ancestry + SEPARATOR, autoescape=True),
        )

    @classmethod
    def roots_statement(cls) -> Select[tuple[Self]]:
        return select(cls).where(cls.ancestry.is_(None)).order_by(*cls.tree_order())

    def ancestors_statement(self, *, include_self: bool = False) -> Select[tuple[Self]]:
        ids = self.ancestors_and_self_ids if include_self else self.ancestor_ids
        cls = type(self)
        return select(cls).where(cls.id.in_(ids)).order_by(*cls.tree_order())

    def children_statement(self) -> Select[tuple[Self]]:
        cls = type(self)
        return select(cls).where(cls.ancestry == self.child_ancestry).order_by(*cls.tree_order())

    def siblings_statement(self, *, include_self: bool = False) -> Select[tuple[Self]]:
        cls = type(self)
        stmt = select(cls).where(cls.ancestry_is(self.ancestry))
        if not include_self and self.id is not None:
            stmt = stmt.where(cls.id != self.id)
        return stmt.order_by(*cls.tree_order())

    def descendants_statement(self, *, include_self: bool = False) -> Select[tuple[Self]]:
        cls = type(self)
        condition = cls.subtree_condition(self.child_ancestry)
        if include_self:
            condition = or_(cls.id == self.id, condition)
        return select(cls).where(condition).order_by(*cls.tree_order())

    # ------------------------------------------------------------------
    # Navigation (queries)
    # ------------------------------------------------------------------

    async def get_parent(self, session: AsyncSession) -> Self | None:
        """Get parent node, None for roots."""
        parent_id = self.parent_id
        if parent_id is None:
            return None
        return await session.get(type(self), parent_id)

    async def get_root(self, session: AsyncSession) -> Self | None:
        """Get the root of this node's tree (self for roots)."""
        if self.is_root:
            return self
        return await session.get(type(self), self.root_id)

    async def get_ancestors(self, session: AsyncSession, *, include_self: bool = False) -> list[Self]:
        """Get ancestors ordered from root to parent (optionally self last).

        Args:
            session: Async database session
            include_self: Append this node to the result
        """
        ids = self.ancestors_and_self_ids if include_self else self.ancestor_ids
        if not ids:
            return []
        result = await session.execute(self.ancestors_statement(include_self=include_self))
        rank = {node_id: index for index, node_id in enumerate(ids)}
        return sorted(result.scalars().all(), key=lambda node: rank[node.id])

    async def get_children(self, session: AsyncSession) -> list[Self]:
        result = await session.execute(self.children_statement())
        return list(result.scalars().all())

    async def get_child_ids(self, session: AsyncSession) -> list[Any]:
        result = await session.execute(self.children_statement().with_only_columns(type(self).id))
        return list(result.scalars().all())

    async def has_children(self, session: AsyncSession) -> bool:
        stmt = select(self.children_statement().order_by(None).exists())
        return bool(await session.scalar(stmt))

    async def is_childless(self, session: AsyncSession) -> bool:
        return not await self.has_children(session)

    async def get_siblings(self, session: AsyncSession, *, include_self: bool = False) -> list[Self]:
        """Get nodes sharing this node's parent (roots for a root).

        Args:
            session: Async database session
            include_self: Include this node in results (default: False)
        """
        result = await session.execute(self.siblings_statement(include_self=include_self))
        return list(result.scalars().all())

    async def get_sibling_ids(self, session: AsyncSession, *, include_self: bool = False) -> list[Any]:
        stmt = self.siblings_statement(include_self=include_self).with_only_columns(type(self).id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def has_siblings(self, session: AsyncSession) -> bool:
        stmt = select(self.siblings_statement().order_by(None).exists())
        return bool(await session.scalar(stmt))

    async def is_only_child(self, session: AsyncSession) -> bool:
        return not await self.has_siblings(session)

    async def get_descendants(self, session: AsyncSession, *, include_self: bool = False) -> list[Self]:
        """Get every node below this one, in default tree order.

        Args:
            session: Async database session
            include_self: Include this node in results (default: False)
        """
        result = await session.execute(self.descendants_statement(include_self=include_self))
        return list(result.scalars().all())

    async def get_descendant_ids(self, session: AsyncSession, *, include_self: bool = False) -> list[Any]:
        stmt = self.descendants_statement(include_self=include_self).with_only_columns(type(self).id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_subtree_count(self, session: AsyncSession, *, include_self: bool = False) -> int:
        """Count descendants with COUNT instead of loading them."""
        subquery = self.descendants_statement(include_self=include_self).order_by(None).subquery()
        return await session.scalar(select(func.count()).select_from(subquery)) or 0

    @classmethod
    async def get_roots(cls, session: AsyncSession) -> list[Self]:
        result = await session.execute(cls.roots_statement())
        return list(result.scalars().all())


class OrderedAncestryMixin(AncestryMixin):
    """Ancestry mixin with a dense position among siblings.

    Provides:
        position: 0-based rank within the sibling group, None until saved

    Use with ``OrderedTreeRepository``, which keeps each sibling group's
    positions exactly ``0..n-1``. Tree queries order by position.
    """

    position: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        default=None,
        comment="Position among siblings",
    )

    @classmethod
    def tree_order(cls) -> tuple[Any, ...]:
        return (cls.position, cls.id)

    def lower_siblings_statement(self) -> Select[tuple[Self]]:
        """Siblings placed after this node."""
        cls = type(self)
        return self.siblings_statement().where(cls.position > self.position)

    def higher_siblings_statement(self) -> Select[tuple[Self]]:
        """Siblings placed before this node."""
        cls = type(self)
        return self.siblings_statement().where(cls.position < self.position)

    async def get_lower_siblings(self, session: AsyncSession) -> list[Self]:
        result = await session.execute(self.lower_siblings_statement())
        return list(result.scalars().all())

    async def get_higher_siblings(self, session: AsyncSession) -> list[Self]:
        result = await session.execute(self.higher_siblings_statement())
        return list(result.scalars().all())

    async def get_highest_sibling(self, session: AsyncSession) -> Self | None:
        """Sibling (or self) with the smallest position."""
        cls = type(self)
        stmt = (
            self.siblings_statement(include_self=True)
            .order_by(None)
            .order_by(cls.position.asc(), cls.id.asc())
            .limit(1)
        )
        return await session.scalar(stmt)

    async def get_lowest_sibling(self, session: AsyncSession) -> Self | None:
        """Sibling (or self) with the largest position."""
        cls = type(self)
        stmt = (
            self.siblings_statement(include_self=True)
            .order_by(None)
            .order_by(cls.position.desc(), cls.id.desc())
            .limit(1)
        )
        return await session.scalar(stmt)

    async def is_at_top(self, session: AsyncSession) -> bool:
        stmt = select(self.higher_siblings_statement().order_by(None).exists())
        return not await session.scalar(stmt)

    async def is_at_bottom(self, session: AsyncSession) -> bool:
        stmt = select(self.lower_siblings_statement().order_by(None).exists())
        return not await session.scalar(stmt)


# ============================================================================
# Persisted ancestry tracking
# ============================================================================


@event.listens_for(AncestryMixin, "load", propagate=True)
def _ancestry_loaded(target: AncestryMixin, context: Any) -> None:
    _record_persisted_ancestry(target)


@event.listens_for(AncestryMixin, "refresh", propagate=True)
def _ancestry_refreshed(target: AncestryMixin, context: Any, attrs: Any) -> None:
    if attrs is None or "ancestry" in attrs:
        _record_persisted_ancestry(target)


@event.listens_for(AncestryMixin, "after_insert", propagate=True)
def _ancestry_inserted(mapper: Any, connection: Any, target: AncestryMixin) -> None:
    _record_persisted_ancestry(target)


__all__ = [
    "AncestryMixin",
    "OrderedAncestryMixin",
]
