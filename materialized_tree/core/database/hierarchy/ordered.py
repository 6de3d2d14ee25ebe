"""Tree repository that keeps sibling groups densely ordered.

Every sibling group of an ``OrderedAncestryMixin`` model holds positions
exactly ``0..n-1``. The repository maintains this when nodes are created,
reparented, destroyed and moved among their siblings. Shifting a range of
siblings is a single atomic ``UPDATE ... SET position = position + delta``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import func, select

from materialized_tree.core.database.exceptions import InvalidStateError, PositionRangeError
from materialized_tree.core.database.hierarchy.repository import TreeRepository
from materialized_tree.core.database.inspection import get_original_value, is_new

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

    from materialized_tree.core.database.hierarchy.mixins import OrderedAncestryMixin

T = TypeVar("T", bound="OrderedAncestryMixin")


class OrderedTreeRepository(TreeRepository[T]):
    """Repository for models using ``OrderedAncestryMixin``.

    Example:
        >>> repo = OrderedTreeRepository(Page)
        >>> first = await repo.create(session, Page(title="a"))   # position 0
        >>> second = await repo.create(session, Page(title="b"))  # position 1
        >>> await repo.move_to_top(session, second)
        >>> (first.position, second.position)
        (1, 0)
    """

    __slots__ = ()

    def _snapshot(self, node: T) -> dict[str, Any]:
        return {**super()._snapshot(node), "position": get_original_value(node, "position")}

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def _before_save(
        self,
        session: AsyncSession,
        node: T,
        *,
        moved: bool,
        snapshot: dict[str, Any],
    ) -> None:
        if moved and snapshot["position"] is not None:
            await self.increment_where(
                session,
                "position",
                -1,
                self.model.ancestry_is(snapshot["ancestry"]),
                self.model.position > snapshot["position"],
                self.model.id != node.id,
            )
        if node.position is None or moved:
            node.position = await self._next_position(session, node.ancestry, exclude_id=node.id)

    async def _before_promote(self, session: AsyncSession, promoted: Sequence[T]) -> None:
        start = await self._next_position(session, None)
        for offset, child in enumerate(promoted):
            child.position = start + offset

    async def _after_destroy(self, session: AsyncSession, node: T, snapshot: dict[str, Any]) -> None:
        if snapshot["position"] is None:
            return
        closed = await self.increment_where(
            session,
            "position",
            -1,
            self.model.ancestry_is(snapshot["ancestry"]),
            self.model.position > snapshot["position"],
        )
        self._lazy.debug(lambda: f"tree.destroy: closed gap at {snapshot['position']}, {closed} siblings shifted")

    async def _next_position(self, session: AsyncSession, ancestry: str | None, *, exclude_id: Any = None) -> int:
        """Position one past the current last member of a sibling group."""
        stmt = select(func.max(self.model.position)).where(self.model.ancestry_is(ancestry))
        if exclude_id is not None:
            stmt = stmt.where(self.model.id != exclude_id)
        highest = await session.scalar(stmt)
        return 0 if highest is None else highest + 1

    async def _shift_siblings(self, session: AsyncSession, node: T, delta: int, *criteria: ColumnElement[bool]) -> int:
        return await self.increment_where(
            session,
            "position",
            delta,
            self.model.ancestry_is(node.ancestry),
            self.model.id != node.id,
            *criteria,
        )

    async def _settle_staged_move(self, session: AsyncSession, node: T) -> None:
        """Save a reparent staged by ``set_parent`` so positions are read from the new group."""
        if node.ancestry != node.persisted_ancestry:
            await self.save(session, node)

    def _require_persisted(self, *nodes: T, operation: str) -> None:
        for node in nodes:
            if is_new(node):
                raise InvalidStateError(
                    "Cannot reorder a node that was never persisted",
                    model_name=self.model.__name__,
                    operation=operation,
                )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def lower_siblings(self, session: AsyncSession, node: T) -> Sequence[T]:
        return await node.get_lower_siblings(session)

    async def higher_siblings(self, session: AsyncSession, node: T) -> Sequence[T]:
        return await node.get_higher_siblings(session)

    async def highest_sibling(self, session: AsyncSession, node: T) -> T | None:
        return await node.get_highest_sibling(session)

    async def lowest_sibling(self, session: AsyncSession, node: T) -> T | None:
        return await node.get_lowest_sibling(session)

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    async def move_to_top(self, session: AsyncSession, node: T) -> T:
        """Move ``node`` to position 0 of its sibling group."""
        self._require_persisted(node, operation="tree.move_to_top")
        await self._settle_staged_move(session, node)
        if await node.is_at_top(session):
            return node
        highest = await node.get_highest_sibling(session)
        return await self.move_above(session, node, highest)

    async def move_to_bottom(self, session: AsyncSession, node: T) -> T:
        """Move ``node`` to the last position of its sibling group."""
        self._require_persisted(node, operation="tree.move_to_bottom")
        await self._settle_staged_move(session, node)
        if await node.is_at_bottom(session):
            return node
        lowest = await node.get_lowest_sibling(session)
        return await self.move_below(session, node, lowest)

    async def _join_group_of(self, session: AsyncSession, node: T, other: T) -> bool:
        """Reparent ``node`` next to ``other`` when they are not siblings.

        Returns:
            False if a move listener vetoed the reparent
        """
        await self._settle_staged_move(session, node)
        if node.is_sibling_of(other):
            return True
        if not await self.set_parent_id(session, node, other.parent_id):
            return False
        await self.save(session, node)
        return True

    async def move_above(self, session: AsyncSession, node: T, other: T) -> T:
        """Place ``node`` directly before ``other``, joining its group if needed.

        Args:
            session: Database session
            node: Node to move
            other: Node that ends up directly after ``node``

        Returns:
            The moved node
        """
        self._require_persisted(node, other, operation="tree.move_above")
        if other.id == node.id or not await self._join_group_of(session, node, other):
            return node

        own, target = node.position, other.position
        if own > target:
            await self._shift_siblings(session, node, 1, self.model.position >= target, self.model.position < own)
            node.position = target
        else:
            await self._shift_siblings(session, node, -1, self.model.position > own, self.model.position < target)
            node.position = target - 1

        self._lazy.debug(lambda: f"tree.move_above: {self.model.__name__}({node.id}) {own} -> {node.position}")
        return await self.save(session, node)

    async def move_below(self, session: AsyncSession, node: T, other: T) -> T:
        """Place ``node`` directly after ``other``, joining its group if needed.

        Args:
            session: Database session
            node: Node to move
            other: Node that ends up directly before ``node``

        Returns:
            The moved node
        """
        self._require_persisted(node, other, operation="tree.move_below")
        if other.id == node.id or not await self._join_group_of(session, node, other):
            return node

        own, target = node.position, other.position
        if own > target:
            await self._shift_siblings(session, node, 1, self.model.position > target, self.model.position < own)
            node.position = target + 1
        else:
            await self._shift_siblings(session, node, -1, self.model.position > own, self.model.position <= target)
            node.position = target

        self._lazy.debug(lambda: f"tree.move_below: {self.model.__name__}({node.id}) {own} -> {node.position}")
        return await self.save(session, node)

    async def move_to_position(self, session: AsyncSession, node: T, position: int) -> T:
        """Move ``node`` to an explicit position within its sibling group.

        Raises:
            PositionRangeError: If ``position`` is outside ``[0, group size)``
        """
        self._require_persisted(node, operation="tree.move_to_position")
        await self._settle_staged_move(session, node)
        size = await self.query().where(self.model.ancestry_is(node.ancestry)).count(session)
        if not 0 <= position < size:
            raise PositionRangeError(position, size)

        own = node.position
        if position == own:
            return node
        if position < own:
            await self._shift_siblings(session, node, 1, self.model.position >= position, self.model.position < own)
        else:
            await self._shift_siblings(session, node, -1, self.model.position > own, self.model.position <= position)

        node.position = position
        self._lazy.debug(lambda: f"tree.move_to_position: {self.model.__name__}({node.id}) {own} -> {position}")
        return await self.save(session, node)


__all__ = [
    "OrderedTreeRepository",
]
