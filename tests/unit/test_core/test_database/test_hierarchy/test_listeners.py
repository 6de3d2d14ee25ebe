"""Tests for move listeners and parent assignment vetoes."""

from __future__ import annotations

import pytest

from materialized_tree.core.database.hierarchy import (
    BaseMoveListener,
    MoveListener,
    MoveListenerRegistry,
    TreePolicy,
    TreeRepository,
)
from tests.fixtures import Category, add_node, stored_ancestry


class RecordingListener(BaseMoveListener):
    """Records calls and answers before_move with a fixed verdict."""

    def __init__(self, name: str, calls: list[str], *, allow: bool = True) -> None:
        self.name = name
        self.calls = calls
        self.allow = allow

    def before_move(self, node, new_parent) -> bool:
        self.calls.append(f"{self.name}.before")
        return self.allow

    def after_move(self, node, new_parent) -> None:
        self.calls.append(f"{self.name}.after")


@pytest.fixture
def listeners() -> MoveListenerRegistry:
    return MoveListenerRegistry()


@pytest.fixture
def repo(listeners) -> TreeRepository[Category]:
    return TreeRepository(Category, policy=TreePolicy(), listeners=listeners)


@pytest.fixture
async def nodes(session, repo):
    root = await add_node(session, repo, "root")
    child = await add_node(session, repo, "child", root)
    other = await add_node(session, repo, "other")
    return root, child, other


# ============================================================================
# Registry
# ============================================================================


class TestMoveListenerRegistry:
    """Registration and dispatch order."""

    def test_register_is_idempotent(self, listeners):
        listener = RecordingListener("a", [])

        assert listeners.register(listener) is listener
        listeners.register(listener)

        assert len(listeners) == 1
        assert list(listeners) == [listener]

    def test_register_rejects_non_listeners(self, listeners):
        with pytest.raises(TypeError):
            listeners.register(object())

    def test_unregister(self, listeners):
        listener = listeners.register(RecordingListener("a", []))

        listeners.unregister(listener)
        listeners.unregister(listener)

        assert len(listeners) == 0

    def test_base_listener_allows_everything(self):
        listener = BaseMoveListener()

        assert isinstance(listener, MoveListener)
        assert listener.before_move(None, None) is True
        assert listener.after_move(None, None) is None

    def test_first_veto_stops_later_listeners(self, listeners):
        calls: list[str] = []
        listeners.register(RecordingListener("first", calls))
        listeners.register(RecordingListener("veto", calls, allow=False))
        listeners.register(RecordingListener("never", calls))

        assert listeners.run_before_move(object(), None) is False
        assert calls == ["first.before", "veto.before"]

    def test_decorators_return_the_function(self, listeners):
        seen: list[tuple] = []

        @listeners.on_before_move
        def allow(node, new_parent):
            return True

        @listeners.on_after_move
        def record(node, new_parent):
            seen.append((node, new_parent))

        assert callable(allow) and allow(None, None) is True
        assert listeners.run_before_move("node", "parent") is True
        listeners.run_after_move("node", "parent")
        assert seen == [("node", "parent")]
        assert len(listeners) == 2


# ============================================================================
# Parent assignment
# ============================================================================


@pytest.mark.asyncio
async def test_veto_leaves_node_unchanged(session, repo, listeners, nodes):
    root, child, other = nodes
    calls: list[str] = []
    listeners.register(RecordingListener("guard", calls, allow=False))

    assert repo.set_parent(child, other) is False
    await repo.save(session, child)

    assert child.parent_id == root.id
    assert await stored_ancestry(session, Category, child.id) == str(root.id)
    assert calls == ["guard.before"]


@pytest.mark.asyncio
async def test_after_hooks_run_once_the_parent_is_assigned(repo, listeners, nodes):
    _, child, other = nodes
    calls: list[str] = []
    parents: list = []
    listeners.register(RecordingListener("audit", calls))
    listeners.on_after_move(lambda node, new_parent: parents.append((node.parent_id, new_parent)))

    assert repo.set_parent(child, other) is True

    assert calls == ["audit.before", "audit.after"]
    assert parents == [(other.id, other)]


@pytest.mark.asyncio
async def test_listener_sees_the_requested_parent(repo, listeners, nodes):
    _, child, _ = nodes
    requested: list = []
    listeners.on_before_move(lambda node, new_parent: requested.append(new_parent) or True)

    repo.set_parent(child, None)

    assert requested == [None]
    assert child.is_root


@pytest.mark.asyncio
async def test_veto_by_predicate(session, repo, listeners, nodes):
    root, child, other = nodes

    @listeners.on_before_move
    def only_under_root(node, new_parent):
        return new_parent is not None and new_parent.id == root.id

    assert repo.set_parent(child, other) is False
    assert await repo.set_parent_id(session, child, root.id) is True
    assert child.parent_id == root.id
