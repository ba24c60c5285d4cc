"""Shared test fixtures for campusboard."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from campusboard.config.schema import CampusBoardConfig, DatabaseConfig
from campusboard.db import create_db
from campusboard.forum.service import Forum
from campusboard.integrations.images import LocalImageStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@pytest.fixture
def memory_config() -> CampusBoardConfig:
    return CampusBoardConfig(database=DatabaseConfig(url="sqlite+aiosqlite://"))


@pytest.fixture
async def db_factory(
    memory_config: CampusBoardConfig,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """In-memory SQLite with foreign keys, savepoints, and all tables."""
    factory, engine = await create_db(memory_config)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with db_factory() as session:
        yield session


@pytest.fixture
def forum(db_session: AsyncSession) -> Forum:
    return Forum(db_session)


@pytest.fixture
def image_store(tmp_path: Path) -> LocalImageStore:
    return LocalImageStore(tmp_path / "images")


@pytest.fixture
def forum_with_images(db_session: AsyncSession, image_store: LocalImageStore) -> Forum:
    return Forum(db_session, images=image_store)
