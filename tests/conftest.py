"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from tallyman.store import build_engine, init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a file-backed SQLite engine with all tables.

    ``NullPool`` keeps connections from outliving the event loop that opened
    them, so the same engine serves async tests and ``run_async`` steps.
    """
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tallyman_test.db'}", poolclass=NullPool
    )
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path: Path) -> typ.AsyncIterator[AsyncEngine]:
    """Yield an engine over a fresh SQLite database."""
    engine = await _setup_sqlite(tmp_path)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(
    sqlite_engine: AsyncEngine,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory bound to the fresh SQLite database."""
    yield async_sessionmaker(sqlite_engine, expire_on_commit=False)
