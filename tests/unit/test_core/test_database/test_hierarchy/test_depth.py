"""Tests for TreeQuery/DepthQuery depth filtering."""

from __future__ import annotations

import pytest

from materialized_tree.core.database.exceptions import ConfigurationError
from materialized_tree.core.database.hierarchy import DepthQuery, TreeQuery
from tests.fixtures import Category, add_node


@pytest.fixture
async def tree(session, category_repo):
    """root(0) -> a(1) -> (b(2) -> d(3)), c(2) ; other(0)."""
    root = await add_node(session, category_repo, "root")
    a = await add_node(session, category_repo, "a", root)
    b = await add_node(session, category_repo, "b", a)
    c = await add_node(session, category_repo, "c", a)
    d = await add_node(session, category_repo, "d", b)
    other = await add_node(session, category_repo, "other")
    return {"root": root, "a": a, "b": b, "c": c, "d": d, "other": other}


def _ids(tree, *names) -> set:
    return {tree[name].id for name in names}


@pytest.mark.asyncio
async def test_depth_cache_matches_path(tree):
    assert {name: node.ancestry_depth for name, node in tree.items()} == {
        "root": 0,
        "a": 1,
        "b": 2,
        "c": 2,
        "d": 3,
        "other": 0,
    }


@pytest.mark.asyncio
async def test_absolute_depth_filters(session, category_repo, tree):
    query = category_repo.query()

    assert set(await query.at_depth(2).ids(session)) == _ids(tree, "b", "c")
    assert set(await query.before_depth(1).ids(session)) == _ids(tree, "root", "other")
    assert set(await query.to_depth(1).ids(session)) == _ids(tree, "root", "other", "a")
    assert set(await query.from_depth(2).ids(session)) == _ids(tree, "b", "c", "d")
    assert set(await query.after_depth(2).ids(session)) == _ids(tree, "d")


@pytest.mark.asyncio
@pytest.mark.parametrize("depth", [0, 1, 2, 3, 4])
async def test_depth_filters_partition_the_tree(session, category_repo, tree, depth):
    query = category_repo.query()
    everything = set(await query.ids(session))

    before = set(await query.before_depth(depth).ids(session))
    at = set(await query.at_depth(depth).ids(session))
    after = set(await query.after_depth(depth).ids(session))

    assert before | at | after == everything
    assert not before & at and not at & after and not before & after
    assert set(await query.to_depth(depth).ids(session)) == before | at
    assert set(await query.from_depth(depth).ids(session)) == at | after


@pytest.mark.asyncio
async def test_relative_filters_use_the_reference_node(session, category_repo, tree):
    descendants = category_repo.descendants(tree["a"])

    assert descendants.reference_depth == 1
    assert set(await descendants.at_relative_depth(1).ids(session)) == _ids(tree, "b", "c")
    assert set(await descendants.at_relative_depth(2).ids(session)) == _ids(tree, "d")
    assert await descendants.after_relative_depth(2).ids(session) == []


@pytest.mark.asyncio
async def test_chained_relative_filters_keep_the_same_reference(session, category_repo, tree):
    descendants = category_repo.descendants(tree["root"])
    expected = _ids(tree, "a", "b", "c")

    forward = descendants.from_relative_depth(1).to_relative_depth(2)
    backward = descendants.to_relative_depth(2).from_relative_depth(1)

    assert isinstance(forward, DepthQuery)
    assert forward.reference_depth == 0
    assert set(await forward.ids(session)) == expected
    assert set(await backward.ids(session)) == expected


@pytest.mark.asyncio
async def test_relative_filters_on_ancestors(session, category_repo, tree):
    ancestors = category_repo.ancestors(tree["d"])

    assert set(await ancestors.before_relative_depth(-1).ids(session)) == _ids(tree, "root", "a")
    assert set(await ancestors.from_relative_depth(-1).ids(session)) == _ids(tree, "b")


@pytest.mark.asyncio
async def test_filters_return_new_queries(session, category_repo, tree):
    query = category_repo.query()
    filtered = query.at_depth(0)

    assert filtered is not query
    assert await query.count(session) == 6
    assert await filtered.count(session) == 2


@pytest.mark.asyncio
async def test_execution_helpers(session, category_repo, tree):
    query = category_repo.query().at_depth(2)

    assert await query.count(session) == 2
    assert await query.exists(session)
    assert await query.first(session) is tree["b"]
    assert not await category_repo.query().after_depth(3).exists(session)
    assert await category_repo.query().after_depth(3).first(session) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["before_depth", "to_depth", "at_depth", "from_depth", "after_depth"])
async def test_depth_filters_require_depth_cache(folder_repo, method):
    with pytest.raises(ConfigurationError) as exc_info:
        getattr(folder_repo.query(), method)(1)

    assert exc_info.value.details["operation"] == method


@pytest.mark.asyncio
async def test_roots_work_without_depth_cache(session, folder_repo):
    root = await add_node(session, folder_repo, "root")
    await add_node(session, folder_repo, "child", root)

    assert await folder_repo.roots().ids(session) == [root.id]


def test_query_repr():
    query = TreeQuery(Category, policy=None)
    assert repr(query) == "TreeQuery(Category)"
    assert repr(DepthQuery(Category, None, reference_depth=2)) == "DepthQuery(Category, reference_depth=2)"
