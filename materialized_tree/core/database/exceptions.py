"""Database repository and tree exceptions.

Custom exceptions for repository and tree operations that provide better
error messages and typing than raw SQLAlchemy exceptions.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository operations.

    Raised when a repository operation fails due to programming
    errors, configuration issues, or unexpected states.

    This is distinct from data-related errors (NotFoundError) and
    indicates a problem with the repository itself.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Entity not found in database.

    Raised when querying for an entity by primary key that doesn't exist,
    for example when reparenting by a parent id that is not stored.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            model_name: Name of the model (e.g., "Category")
            identifier: Key-value pairs used in the search (e.g., {"id": 123})
        """
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


# ============================================================================
# Tree errors
# ============================================================================


class TreeError(RepositoryError):
    """Base exception for materialized path tree operations."""


class ConfigurationError(TreeError):
    """Operation requires a tree policy feature that is disabled.

    Raised by the absolute and relative depth filters when the model's
    policy does not cache depth.
    """

    def __init__(self, message: str, *, model_name: str | None = None, operation: str | None = None):
        details: dict[str, Any] = {}
        if model_name:
            details["model"] = model_name
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details)


class InvalidStateError(TreeError):
    """Tree operation requested on a node that was never persisted.

    A transient node has no id yet, so it cannot be a parent, cannot be
    moved among siblings and cannot be destroyed.
    """

    def __init__(self, message: str, *, model_name: str | None = None, operation: str | None = None):
        details: dict[str, Any] = {}
        if model_name:
            details["model"] = model_name
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details)


class InvariantViolationError(TreeError):
    """Operation would break a tree invariant.

    Raised when the restrict orphan strategy blocks a destroy because
    children exist, and when a node would become its own ancestor.
    """


class PositionRangeError(TreeError):
    """Explicit sibling position outside ``[0, group size)``.

    Attributes:
        position: The requested position
        size: Size of the sibling group, the node itself included
    """

    def __init__(self, position: int, size: int):
        self.position = position
        self.size = size
        super().__init__(
            f"Position {position} is out of range for a sibling group of {size}",
            details={"position": position, "size": size},
        )


class PathFormatError(TreeError):
    """Encoded ancestry is malformed or an id cannot be encoded."""

    def __init__(self, message: str, *, raw: Any = None):
        details = {"raw": raw} if raw is not None else {}
        super().__init__(message, details=details)


__all__ = [
    "ConfigurationError",
    "InvalidStateError",
    "InvariantViolationError",
    "NotFoundError",
    "PathFormatError",
    "PositionRangeError",
    "RepositoryError",
    "TreeError",
]
