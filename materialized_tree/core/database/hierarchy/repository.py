"""Repository that maintains materialized path trees.

``TreeRepository`` extends the generic repository with the tree mutation
protocol:

- ``set_parent`` stages a new ancestry (subject to move listeners)
- ``save`` writes a node and rewrites the ancestry of its whole subtree
  when the node was reparented
- ``destroy`` removes a node after applying the orphan strategy to its
  descendants

Cascaded descendants are written through ``_raw_save`` / ``_raw_destroy``,
which skip the save hooks and orphan handling but keep the depth cache
current. Nothing is committed here; callers own the transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import select

from materialized_tree.core.database.exceptions import InvalidStateError, InvariantViolationError
from materialized_tree.core.database.hierarchy.depth import DepthQuery, TreeQuery
from materialized_tree.core.database.hierarchy.listeners import MoveListenerRegistry
from materialized_tree.core.database.hierarchy.path import AncestryPath
from materialized_tree.core.database.hierarchy.policy import OrphanStrategy, TreePolicy
from materialized_tree.core.database.inspection import is_new
from materialized_tree.core.database.repository import BaseRepository

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

    from materialized_tree.core.database.hierarchy.mixins import AncestryMixin

T = TypeVar("T", bound="AncestryMixin")


class TreeRepository(BaseRepository[T]):
    """Repository for models using ``AncestryMixin``.

    Example:
        >>> repo = TreeRepository(Category, policy=TreePolicy(cache_depth=True))
        >>> root = await repo.create(session, Category(name="root"))
        >>> child = Category(name="child")
        >>> repo.set_parent(child, root)
        True
        >>> await repo.save(session, child)
        >>> await repo.children(session, root)
        [<Category child>]
    """

    __slots__ = ("listeners", "policy")

    def __init__(
        self,
        model: type[T],
        *,
        policy: TreePolicy | None = None,
        listeners: MoveListenerRegistry | None = None,
    ) -> None:
        """Initialize repository.

        Args:
            model: Tree model class
            policy: Tree policy; defaults come from ``TREE_*`` settings
            listeners: Move listener registry; a private empty one by default
        """
        super().__init__(model)
        self.policy = policy if policy is not None else TreePolicy.from_settings()
        self.listeners = listeners if listeners is not None else MoveListenerRegistry()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(self) -> TreeQuery[T]:
        """Query over every node of the model."""
        return TreeQuery(self.model, self.policy)

    def where(self, *criteria: ColumnElement[bool]) -> TreeQuery[T]:
        return self.query().where(*criteria)

    def roots(self) -> TreeQuery[T]:
        return self.query().roots()

    def _depth_query(self, node: T, statement: Any) -> DepthQuery[T]:
        return DepthQuery(self.model, self.policy, statement, reference_depth=node.depth)

    def ancestors(self, node: T) -> DepthQuery[T]:
        """Ancestors of ``node`` as a depth query relative to ``node``."""
        return self._depth_query(node, node.ancestors_statement())

    def ancestors_and_self(self, node: T) -> DepthQuery[T]:
        return self._depth_query(node, node.ancestors_statement(include_self=True))

    def descendants(self, node: T) -> DepthQuery[T]:
        """Descendants of ``node`` as a depth query relative to ``node``.

        Raises:
            InvalidStateError: If ``node`` was never persisted
        """
        return self._depth_query(node, node.descendants_statement())

    def descendants_and_self(self, node: T) -> DepthQuery[T]:
        return self._depth_query(node, node.descendants_statement(include_self=True))

    async def children(self, session: AsyncSession, node: T) -> Sequence[T]:
        return await node.get_children(session)

    async def siblings(self, session: AsyncSession, node: T, *, include_self: bool = False) -> Sequence[T]:
        return await node.get_siblings(session, include_self=include_self)

    # ------------------------------------------------------------------
    # Parent assignment
    # ------------------------------------------------------------------

    def set_parent(self, node: T, new_parent: T | None) -> bool:
        """Stage ``new_parent`` as the parent of ``node``.

        The change is written by the next ``save``. Before-move listeners
        run first, in registration order; the first one returning False
        abandons the assignment.

        Args:
            node: Node to move
            new_parent: New parent, or None to make ``node`` a root

        Returns:
            True if the parent was assigned, False if a listener vetoed

        Raises:
            InvalidStateError: If ``new_parent`` was never persisted
            InvariantViolationError: If ``new_parent`` is ``node`` or one of its descendants
        """
        if new_parent is None:
            new_path = AncestryPath()
        else:
            new_path = new_parent.child_ancestry_path
            if node.id is not None and node.id in new_path:
                raise InvariantViolationError(
                    "A node cannot be moved under itself or its own descendant",
                    details={"entity": self.model.__name__, "id": node.id, "parent_id": new_parent.id},
                )

        if not self.listeners.run_before_move(node, new_parent):
            self._logger.info(
                "Parent assignment vetoed",
                extra={
                    "entity": self.model.__name__,
                    "id": str(node.id),
                    "parent_id": str(getattr(new_parent, "id", None)),
                    "operation": "tree.set_parent",
                },
            )
            return False

        node.ancestry_path = new_path
        self.listeners.run_after_move(node, new_parent)
        self._lazy.debug(lambda: f"tree.set_parent: {self.model.__name__}({node.id}) -> {new_path!r}")
        return True

    async def set_parent_id(self, session: AsyncSession, node: T, parent_id: Any | None) -> bool:
        """Stage the node with id ``parent_id`` as the parent of ``node``.

        Raises:
            NotFoundError: If no node has id ``parent_id``
        """
        new_parent = None if parent_id is None else await self.get_or_raise(session, parent_id)
        return self.set_parent(node, new_parent)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _snapshot(self, node: T) -> dict[str, Any]:
        """Values as of the last persist, captured before a save or destroy."""
        return {"ancestry": node.persisted_ancestry}

    def _refresh_depth_cache(self, node: T) -> None:
        if self.policy.cache_depth:
            node.ancestry_depth = node.depth

    async def _before_save(
        self,
        session: AsyncSession,
        node: T,
        *,
        moved: bool,
        snapshot: dict[str, Any],
    ) -> None:
        """Hook run before a node is written (not for cascaded descendants)."""

    async def _before_promote(self, session: AsyncSession, promoted: Sequence[T]) -> None:
        """Hook run before rootify turns ``promoted`` into roots."""

    async def _after_destroy(self, session: AsyncSession, node: T, snapshot: dict[str, Any]) -> None:
        """Hook run after a node was removed."""

    async def save(self, session: AsyncSession, instance: T) -> T:
        """Write a node, cascading a reparent to its subtree.

        Args:
            session: Database session
            instance: Node to write (new or persisted)

        Returns:
            The written node
        """
        node = instance
        new = is_new(node)
        with session.no_autoflush:
            snapshot = self._snapshot(node)
            moved = not new and node.ancestry != snapshot["ancestry"]
            old_prefix = node.child_ancestry_path if moved else None
            await self._before_save(session, node, moved=moved, snapshot=snapshot)
            self._refresh_depth_cache(node)

        await super().save(session, node)
        if new:
            await session.refresh(node)
        node.mark_ancestry_persisted()

        if old_prefix is not None:
            await self._rewrite_descendants(session, node, old_prefix)
        return node

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new node through ``save`` so the save hooks run."""
        return await self.save(session, instance)

    async def _rewrite_descendants(self, session: AsyncSession, node: T, old_prefix: AncestryPath) -> None:
        """Move every descendant still under ``old_prefix`` below the node's new ancestry."""
        new_prefix = node.child_ancestry_path
        old_encoded = old_prefix.encode()
        stmt = select(self.model).where(self.model.subtree_condition(old_encoded)).order_by(*self.model.tree_order())
        descendants = (await session.execute(stmt)).scalars().all()

        for descendant in descendants:
            descendant.ancestry_path = descendant.ancestry_path.replace_prefix(old_prefix, new_prefix)
            await self._raw_save(session, descendant)

        self._logger.info(
            "Descendants rewritten",
            extra={
                "entity": self.model.__name__,
                "id": str(node.id),
                "count": len(descendants),
                "operation": "tree.cascade_move",
            },
        )

    async def _raw_save(self, session: AsyncSession, node: T) -> None:
        """Write a cascaded node without hooks, keeping the depth cache."""
        self._refresh_depth_cache(node)
        await BaseRepository.save(self, session, node)
        node.mark_ancestry_persisted()

    async def _raw_destroy(self, session: AsyncSession, node: T) -> None:
        """Remove a cascaded node without orphan handling or hooks."""
        await session.delete(node)
        await session.flush()

    async def destroy(self, session: AsyncSession, node: T) -> None:
        """Remove a node after applying the orphan strategy to its descendants.

        Args:
            session: Database session
            node: Persisted node to remove

        Raises:
            InvalidStateError: If ``node`` was never persisted
            InvariantViolationError: If the strategy is restrict and ``node`` has children
        """
        if is_new(node):
            raise InvalidStateError(
                "Cannot destroy a node that was never persisted",
                model_name=self.model.__name__,
                operation="tree.destroy",
            )

        snapshot = self._snapshot(node)
        strategy = self.policy.orphan_strategy

        if strategy is OrphanStrategy.RESTRICT:
            if await node.has_children(session):
                self._logger.info(
                    "Destroy restricted by children",
                    extra={"entity": self.model.__name__, "id": str(node.id), "operation": "tree.destroy"},
                )
                raise InvariantViolationError(
                    "Cannot destroy a node with children under the restrict strategy",
                    details={"entity": self.model.__name__, "id": node.id},
                )
        elif strategy is OrphanStrategy.DESTROY:
            descendants = await node.get_descendants(session)
            for descendant in descendants:
                await self._raw_destroy(session, descendant)
            self._lazy.debug(lambda: f"tree.destroy: removed {len(descendants)} descendants of {node.id}")
        elif strategy is OrphanStrategy.ROOTIFY:
            await self._rootify_descendants(session, node)

        await self.delete(session, node)
        await self._after_destroy(session, node, snapshot)

    async def _rootify_descendants(self, session: AsyncSession, node: T) -> None:
        prefix = node.child_ancestry_path
        descendants = await node.get_descendants(session)
        promoted = [d for d in descendants if d.ancestry_path == prefix]

        await self._before_promote(session, promoted)
        for descendant in descendants:
            descendant.ancestry_path = descendant.ancestry_path.replace_prefix(prefix, ())
            await self._raw_save(session, descendant)

        self._logger.info(
            "Descendants rootified",
            extra={
                "entity": self.model.__name__,
                "id": str(node.id),
                "count": len(descendants),
                "promoted": len(promoted),
                "operation": "tree.destroy",
            },
        )


__all__ = [
    "TreeRepository",
]
