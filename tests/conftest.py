"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: async SQLite engine and session with tree tables
    - Repository Fixtures: tree repositories for the test models
    - Settings Fixtures: isolation of cached settings between tests
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from materialized_tree.core.database import Base
from materialized_tree.core.database.hierarchy import (
    OrderedTreeRepository,
    OrphanStrategy,
    TreePolicy,
    TreeRepository,
)
from materialized_tree.core.settings import clear_all_caches
from tests.fixtures import Category, Folder, Page

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def async_engine():
    """Create async SQLite engine with all test tables.

    Returns:
        SQLAlchemy async engine configured for in-memory SQLite.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(async_engine) -> AsyncGenerator[AsyncSession]:
    """Create async database session for testing.

    Yields:
        Async database session; rolled back on exit.
    """
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        yield session
        await session.rollback()


# ============================================================================
# Repository Fixtures
# ============================================================================


@pytest.fixture
def category_repo() -> TreeRepository[Category]:
    """Unordered repository with depth caching enabled."""
    return TreeRepository(Category, policy=TreePolicy(cache_depth=True))


@pytest.fixture
def page_repo() -> OrderedTreeRepository[Page]:
    """Ordered repository with default orphan strategy (destroy)."""
    return OrderedTreeRepository(Page, policy=TreePolicy(cache_depth=True))


@pytest.fixture
def rootify_page_repo() -> OrderedTreeRepository[Page]:
    return OrderedTreeRepository(Page, policy=TreePolicy(orphan_strategy=OrphanStrategy.ROOTIFY))


@pytest.fixture
def folder_repo() -> TreeRepository[Folder]:
    return TreeRepository(Folder, policy=TreePolicy())


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Drop TREE_/LOG_ overrides from the environment and reset cached settings."""
    for name in ("TREE_ORPHAN_STRATEGY", "TREE_CACHE_DEPTH", "LOG_LEVEL", "LOG_JSON"):
        monkeypatch.delenv(name, raising=False)
    clear_all_caches()
    yield
    clear_all_caches()
