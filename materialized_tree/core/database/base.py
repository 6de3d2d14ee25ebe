"""Declarative base and primary key mixins for tree models.

Tree models are ordinary SQLAlchemy declarative models. They pick a
primary key strategy from this module and a tree behaviour from
``materialized_tree.core.database.hierarchy``.

Examples:
    Integer keyed tree:
    class Category(Base, IntegerPKMixin, AncestryMixin):
        __tablename__ = "categories"
        name: Mapped[str] = mapped_column(String(255))

    UUID keyed ordered tree:
    class Page(Base, UUIDPKMixin, OrderedAncestryMixin):
        __tablename__ = "pages"
        __ancestry_id_parser__ = uuid.UUID
        title: Mapped[str] = mapped_column(String(255))
"""

from __future__ import annotations

import uuid

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

# Consistent naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with automatic table naming.

    Provides:
    - Consistent constraint naming via NAMING_CONVENTION
    - Automatic table name generation from class name (lowercase)

    The automatic table naming can be overridden by setting __tablename__
    explicitly on the model class.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Auto-derive table name from class name (lowercase)."""
        return cls.__name__.lower()


# ============================================================================
# Primary Key Mixins
# ============================================================================


class IntegerPKMixin:
    """Integer auto-increment primary key.

    The store assigns the id on the first flush. Ancestry strings of
    integer keyed models hold the decimal form of each ancestor id.

    Provides:
        id: Auto-incrementing integer primary key
    """

    __allow_unmapped__ = True

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing integer primary key",
    )


class UUIDPKMixin:
    """UUID v4 primary key.

    Pair with ``__ancestry_id_parser__ = uuid.UUID`` on tree models so
    decoded ancestor ids compare equal to ``id`` values.

    Provides:
        id: UUID v4 primary key (random)
    """

    __allow_unmapped__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID v4 primary key",
    )


__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "IntegerPKMixin",
    "UUIDPKMixin",
]
