"""Tests for engine construction and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import inspect, text

from campusboard.config.schema import CampusBoardConfig, DatabaseConfig, LoggingConfig
from campusboard.db import _expand_url, create_db, create_schema
from campusboard.logging_setup import configure_logging

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class TestExpandUrl:
    def test_home_expanded(self):
        url = _expand_url("sqlite+aiosqlite:///~/board.db")
        assert url == f"sqlite+aiosqlite:///{Path.home()}/board.db"

    def test_plain_url_untouched(self):
        assert _expand_url("postgresql+asyncpg://db/board") == "postgresql+asyncpg://db/board"


class TestCreateDb:
    async def test_memory_db_has_schema(self, db_factory: async_sessionmaker[AsyncSession]):
        async with db_factory() as session:
            tables = await session.run_sync(
                lambda s: inspect(s.connection()).get_table_names()
            )
        for name in ("threads", "comments", "reactions", "thread_aliases", "unread_records"):
            assert name in tables

    async def test_foreign_keys_enabled(self, db_factory: async_sessionmaker[AsyncSession]):
        async with db_factory() as session:
            result = await session.execute(text("PRAGMA foreign_keys"))
            assert result.scalar_one() == 1

    async def test_file_db_creates_directory(self, tmp_path: Path):
        path = tmp_path / "nested" / "board.db"
        config = CampusBoardConfig(database=DatabaseConfig(url=f"sqlite+aiosqlite:///{path}"))
        factory, engine = await create_db(config)
        try:
            assert path.parent.is_dir()
            await create_schema(engine)
            async with factory() as session:
                count = await session.scalar(text("SELECT count(*) FROM threads"))
            assert count == 0
        finally:
            await engine.dispose()


class TestConfigureLogging:
    def test_file_handler_and_replacement(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "board.log"
        configure_logging(LoggingConfig(level="debug", file=str(log_file)))
        logger = logging.getLogger("campusboard")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert logger.propagate is False

        logging.getLogger("campusboard.forum").info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text()

        configure_logging(LoggingConfig())
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

    def test_structured_format(self, tmp_path: Path):
        log_file = tmp_path / "board.log"
        configure_logging(LoggingConfig(file=str(log_file), structured=True))
        logging.getLogger("campusboard.db").warning("slow query")
        for handler in logging.getLogger("campusboard").handlers:
            handler.flush()
        line = log_file.read_text().strip()
        assert "level=WARNING" in line
        assert "msg='slow query'" in line
        configure_logging(LoggingConfig())
