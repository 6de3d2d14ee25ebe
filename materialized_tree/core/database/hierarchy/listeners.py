"""Move listeners for parent assignment.

A tree repository consults its listener registry whenever a node's parent
is assigned. Before-move listeners may veto the assignment by returning
``False``; after-move listeners observe a completed assignment.

Usage:
    registry = MoveListenerRegistry()

    @registry.on_before_move
    def no_archived_parents(node, new_parent):
        return new_parent is None or not new_parent.archived

    @registry.on_after_move
    def touch(node, new_parent):
        node.moved_at = datetime.now(UTC)

    repo = TreeRepository(Category, listeners=registry)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)


@runtime_checkable
class MoveListener(Protocol):
    """Observer of parent assignments."""

    def before_move(self, node: Any, new_parent: Any | None) -> bool:
        """Return False to veto moving ``node`` under ``new_parent``."""
        ...

    def after_move(self, node: Any, new_parent: Any | None) -> None:
        """Called after ``node`` was assigned to ``new_parent``."""
        ...


class BaseMoveListener:
    """Listener with permissive defaults; override what you need."""

    def before_move(self, node: Any, new_parent: Any | None) -> bool:
        return True

    def after_move(self, node: Any, new_parent: Any | None) -> None:
        return None


class _BeforeMoveCallback(BaseMoveListener):
    __slots__ = ("func",)

    def __init__(self, func: Callable[[Any, Any | None], bool]) -> None:
        self.func = func

    def before_move(self, node: Any, new_parent: Any | None) -> bool:
        return self.func(node, new_parent) is not False

    def __repr__(self) -> str:
        return f"before_move({getattr(self.func, '__qualname__', self.func)!r})"


class _AfterMoveCallback(BaseMoveListener):
    __slots__ = ("func",)

    def __init__(self, func: Callable[[Any, Any | None], None]) -> None:
        self.func = func

    def after_move(self, node: Any, new_parent: Any | None) -> None:
        self.func(node, new_parent)

    def __repr__(self) -> str:
        return f"after_move({getattr(self.func, '__qualname__', self.func)!r})"

L = TypeVar("L", bound="MoveListener")
BeforeF = TypeVar("BeforeF", bound="Callable[..., bool]")
AfterF = TypeVar("AfterF", bound="Callable[..., None]")


class MoveListenerRegistry:
    """Ordered collection of move listeners.

    Listeners run in registration order. Registration is expected during
    startup; registering the same listener twice is a no-op.
    """

    def __init__(self) -> None:
        self._listeners: list[MoveListener] = []

    def register(self, listener: L) -> L:
        """Register a listener. Usable as a class-instance decorator.

        Returns:
            The listener (unchanged)

        Raises:
            TypeError: If ``listener`` does not implement MoveListener
        """
        if not isinstance(listener, MoveListener):
            raise TypeError(f"{listener!r} does not implement before_move/after_move")
        if listener in self._listeners:
            return listener

        self._listeners.append(listener)
        logger.debug("Registered move listener", extra={"listener": repr(listener)})
        return listener

    def unregister(self, listener: MoveListener) -> None:
        """Remove a listener; unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_before_move(self, func: BeforeF) -> BeforeF:
        """Register a plain ``(node, new_parent) -> bool`` callable."""
        self.register(_BeforeMoveCallback(func))
        return func

    def on_after_move(self, func: AfterF) -> AfterF:
        """Register a plain ``(node, new_parent) -> None`` callable."""
        self.register(_AfterMoveCallback(func))
        return func

    def run_before_move(self, node: Any, new_parent: Any | None) -> bool:
        """Run before-move listeners until one vetoes.

        Returns:
            False as soon as a listener returns False (later listeners
            are not called), True otherwise
        """
        return all(listener.before_move(node, new_parent) is not False for listener in self._listeners)

    def run_after_move(self, node: Any, new_parent: Any | None) -> None:
        """Run every after-move listener."""
        for listener in self._listeners:
            listener.after_move(node, new_parent)

    def __len__(self) -> int:
        return len(self._listeners)

    def __iter__(self) -> Iterator[MoveListener]:
        return iter(list(self._listeners))


__all__ = [
    "BaseMoveListener",
    "MoveListener",
    "MoveListenerRegistry",
]
