"""SQLAlchemy instance inspection utilities for change tracking.

These utilities use SQLAlchemy's inspection API to tell new instances from
persisted ones and to recover as-persisted values without triggering
database operations.

Example:
    >>> node = await session.get(Category, 1)
    >>> node.ancestry = "7"
    >>> get_original_value(node, "ancestry")
    '3/5'
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect as sa_inspect

if TYPE_CHECKING:
    from sqlalchemy.orm import InstanceState
    from sqlalchemy.orm.attributes import History


def get_original_value(instance: Any, attr: str) -> Any:
    """Get the value an attribute had when the instance was last persisted.

    Returns the current value when the attribute is unchanged since the
    last load or flush. A changed attribute whose original was never
    loaded reports ``None``; map tree columns with ``active_history=True``
    so the original is always recorded.

    Args:
        instance: SQLAlchemy ORM model instance
        attr: Column attribute name

    Returns:
        The as-of-last-persist value

    Example:
        >>> node.ancestry = None  # was "1/2"
        >>> get_original_value(node, "ancestry")
        '1/2'
    """
    state: InstanceState[Any] = sa_inspect(instance)
    history: History = state.attrs[attr].history

    if not history.has_changes():
        return getattr(instance, attr)
    if history.deleted:
        return history.deleted[0]
    return None


def is_new(instance: Any) -> bool:
    """Check if instance is new (not yet in database).

    Returns:
        True if instance has never been flushed to database
    """
    state: InstanceState[Any] = sa_inspect(instance)
    return state.pending or state.transient


__all__ = [
    "get_original_value",
    "is_new",
]
