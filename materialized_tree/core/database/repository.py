"""Minimal generic repository for SQLAlchemy models.

Provides the store operations the tree engine is built on: lookup by
primary key, create, save (upsert by id), delete, and atomic numeric
increments that do not require a full resave.
For complex queries, use the session directly - this is a convenience, not a cage.

Example:
    from materialized_tree.core.database import BaseRepository

    repo = BaseRepository(Category)
    category = await repo.get(session, category_id)
    await repo.increment(session, category, "views", 1)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from sqlalchemy import select, update

from materialized_tree.core.database.exceptions import NotFoundError
from materialized_tree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - list(session, limit, offset) -> Sequence[T]
        - create(session, instance) -> T
        - save(session, instance) -> T
        - delete(session, instance) -> None
        - increment(session, instance, field, delta) -> None
        - increment_where(session, field, delta, *criteria) -> int

    Session is always explicit - no hidden state. The repository only
    flushes; committing or rolling back is the caller's decision.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class (e.g., Category)
        """
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T | None:
        """Get entity by primary key.

        Args:
            session: Database session
            id: Primary key value
            options: SQLAlchemy loader options (e.g., selectinload)

        Returns:
            Entity if found, None otherwise
        """
        if options:
            stmt = select(self.model).where(self._pk_attr() == id).options(*options)
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()
        else:
            instance = await session.get(self.model, id)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T:
        """Get entity by primary key or raise NotFoundError.

        Raises:
            NotFoundError: If entity doesn't exist
        """
        instance = await self.get(session, id, options=options)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model.__name__, {"id": id})
        return instance

    async def list(
        self,
        session: AsyncSession,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[T]:
        """List entities with pagination."""
        stmt = select(self.model).limit(limit).offset(offset)
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.list: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)} items"
        )
        return items

    async def find(
        self,
        session: AsyncSession,
        *criteria: ColumnElement[bool],
        order_by: Sequence[Any] | None = None,
        limit: int | None = None,
    ) -> Sequence[T]:
        """Find entities matching arbitrary WHERE criteria.

        Args:
            session: Database session
            *criteria: SQLAlchemy boolean expressions, combined with AND
            order_by: Optional ordering columns
            limit: Optional row limit

        Returns:
            Matching entities
        """
        stmt = select(self.model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.find: {self.model.__name__} -> {len(items)} items")
        return items

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session, flushes to get generated values (like id),
        and refreshes to ensure instance is up-to-date.

        Args:
            session: Database session
            instance: Entity instance to persist

        Returns:
            Persisted entity with generated fields populated
        """
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def save(self, session: AsyncSession, instance: T) -> T:
        """Write an entity (insert when new, update by id otherwise).

        Args:
            session: Database session
            instance: Entity instance to write

        Returns:
            The written entity
        """
        session.add(instance)
        await session.flush()

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.save: {self.model.__name__}(id={entity_id})")
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        """Delete an entity.

        Args:
            session: Database session
            instance: Entity to delete
        """
        entity_id = getattr(instance, "id", None)
        await session.delete(instance)
        await session.flush()

        self._logger.info(
            "Entity deleted",
            extra={"entity": self.model.__name__, "id": str(entity_id), "operation": "db.delete"},
        )

    async def increment(
        self,
        session: AsyncSession,
        instance: T,
        field: str,
        delta: int = 1,
    ) -> None:
        """Atomically add ``delta`` to one numeric column of one entity.

        Issues ``UPDATE ... SET field = field + delta`` without resaving the
        instance. The in-session copy is synchronized by the ORM.

        Args:
            session: Database session
            instance: Entity to bump
            field: Numeric column attribute name
            delta: Amount to add (negative to subtract)
        """
        pk_attr = self._pk_attr()
        await self.increment_where(session, field, delta, pk_attr == getattr(instance, pk_attr.key))

    async def increment_where(
        self,
        session: AsyncSession,
        field: str,
        delta: int,
        *criteria: ColumnElement[bool],
    ) -> int:
        """Atomically add ``delta`` to a numeric column of every matching row.

        Args:
            session: Database session
            field: Numeric column attribute name
            delta: Amount to add (negative to subtract)
            *criteria: WHERE criteria selecting the rows

        Returns:
            Number of rows updated

        Example:
            # Close a gap among siblings
            await repo.increment_where(
                session, "position", -1,
                Category.ancestry == "1", Category.position > 2,
            )
        """
        column = getattr(self.model, field)
        stmt = update(self.model).where(*criteria).values({field: column + delta})
        result = await session.execute(stmt)
        updated: int = result.rowcount if hasattr(result, "rowcount") else 0

        self._lazy.debug(
            lambda: f"db.increment_where: {self.model.__name__}.{field} {delta:+d} -> {updated} rows"
        )
        return updated

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        """Get primary key attribute.

        Inspects the model to find the primary key column.
        Falls back to 'id' if inspection fails.
        """
        from sqlalchemy import inspect as sa_inspect

        try:
            mapper = sa_inspect(self.model)
            if mapper is None:
                raise AttributeError("No mapper found")
            pk_cols = getattr(mapper, "primary_key", None)
            if pk_cols and len(pk_cols) > 0:
                return cast("InstrumentedAttribute[Any]", getattr(self.model, pk_cols[0].name))
        except Exception:
            pass

        attr = getattr(self.model, "id", None)
        if attr is None:
            raise AttributeError(f"{self.model.__name__} has no 'id' attribute")
        return cast("InstrumentedAttribute[Any]", attr)


__all__ = [
    "BaseRepository",
]
