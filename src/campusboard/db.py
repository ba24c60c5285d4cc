"""Async engine and session factory construction."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from campusboard.forum.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from campusboard.config.schema import CampusBoardConfig


def install_sqlite_pragmas(engine: AsyncEngine) -> None:
    """Enable foreign keys and working SAVEPOINTs on a SQLite engine.

    The driver's implicit transaction handling is switched off and
    ``BEGIN`` is emitted explicitly, so nested transactions behave as
    on a server database.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


def _expand_url(url: str) -> str:
    if "~" in url:
        url = url.replace("~", str(Path.home()))
    return url


async def create_db(
    config: CampusBoardConfig,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create async engine and sessionmaker from config."""
    url = _expand_url(config.database.url)
    is_sqlite = url.startswith("sqlite")
    is_memory = is_sqlite and (":memory:" in url or url.rstrip("/").endswith(":"))

    if is_sqlite and not is_memory:
        db_path = url.split("///")[-1] if "///" in url else ""
        if db_path:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine_kwargs: dict[str, Any] = {}
    if is_memory:
        # In-memory SQLite needs StaticPool so every session shares
        # the same connection (and thus the same database).
        from sqlalchemy.pool import StaticPool

        engine_kwargs["poolclass"] = StaticPool
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    elif is_sqlite:
        from sqlalchemy.pool import NullPool

        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_size"] = config.database.pool_size
        engine_kwargs["max_overflow"] = config.database.max_overflow
        engine_kwargs["pool_timeout"] = config.database.pool_timeout
        engine_kwargs["pool_recycle"] = config.database.pool_recycle
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **engine_kwargs)
    if is_sqlite:
        install_sqlite_pragmas(engine)

    # File-based databases are managed by alembic (or ``campusboard init-db``).
    if is_memory:
        await create_schema(engine)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    return factory, engine


async def create_schema(engine: AsyncEngine) -> None:
    """Create every table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
