"""Main CLI application.

Click commands for campusboard: serve, init-db, purge, threads, token.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import timedelta
from typing import TYPE_CHECKING

import click

from campusboard import __version__
from campusboard.config.loader import load_config
from campusboard.core.errors import CampusBoardError, ConfigError

if TYPE_CHECKING:
    from campusboard.config.schema import CampusBoardConfig


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> CampusBoardConfig:
    """Load config with user-friendly error handling."""
    try:
        config = load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy

    from campusboard.logging_setup import configure_logging

    configure_logging(config.logging)
    return config


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="campusboard")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """campusboard - Campus forum discussion backend."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── init-db ──────────────────────────────────────────────────────


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create any missing tables (use alembic for upgrades)."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_init_db_async(config))
    except CampusBoardError as e:
        _error(str(e))
    click.echo("Database schema ready.")


async def _init_db_async(config: CampusBoardConfig) -> None:
    from campusboard.db import create_db, create_schema

    _, engine = await create_db(config)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


# ── purge ────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--days",
    type=int,
    default=None,
    help="Purge threads deleted more than N days ago (default: purge.retention_days).",
)
@click.pass_context
def purge(ctx: click.Context, days: int | None) -> None:
    """Permanently remove long soft-deleted threads and their files."""
    config = _load_config(ctx.obj["config_path"])
    retention = config.purge.retention_days if days is None else days
    if retention < 0:
        _error("--days must be >= 0")
    try:
        purged = asyncio.run(_purge_async(config, retention))
    except CampusBoardError as e:
        _error(str(e))
        return
    click.echo(f"Purged {len(purged)} thread(s).")
    for thread_id in purged:
        click.echo(f"  {thread_id}")


async def _purge_async(config: CampusBoardConfig, days: int) -> list[int]:
    from campusboard.db import create_db
    from campusboard.forum.service import Forum
    from campusboard.integrations.images import LocalImageStore

    factory, engine = await create_db(config)
    images = LocalImageStore(config.images.directory, config.images.base_url)
    try:
        async with factory() as session:
            forum = Forum(session, config.general, images=images)
            purged = await forum.threads.purge_expired(timedelta(days=days))
            await session.commit()
    finally:
        await engine.dispose()
    return purged


# ── threads ──────────────────────────────────────────────────────


@cli.command()
@click.option("--search", default="", help="Free-text filter.")
@click.option("--deleted", is_flag=True, help="Include soft-deleted threads.")
@click.option("--limit", type=int, default=20, help="Max results.")
@click.pass_context
def threads(ctx: click.Context, search: str, deleted: bool, limit: int) -> None:
    """List threads, newest and most valued first."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_threads_async(config, search, deleted, limit))
    except CampusBoardError as e:
        _error(str(e))


async def _threads_async(
    config: CampusBoardConfig, search: str, deleted: bool, limit: int
) -> None:
    from campusboard.db import create_db
    from campusboard.forum.service import Forum
    from campusboard.forum.threads import ThreadFilter

    factory, engine = await create_db(config)
    try:
        async with factory() as session:
            forum = Forum(session, config.general)
            views, total = await forum.threads.list_threads(
                ThreadFilter(search=search, include_deleted=deleted),
                forum.page(1, limit),
            )
    finally:
        await engine.dispose()

    if not views:
        click.echo("No threads found.")
        return

    for view in views:
        t = view.thread
        created = t.created_at.strftime("%Y-%m-%d %H:%M")
        snippet = t.title[:60].replace("\n", " ")
        marker = " (deleted)" if view.is_deleted else ""
        click.echo(
            f"  {t.id:>6}  [{t.category.value}/{t.resolution.value}]  "
            f"{created}  {snippet}{marker}"
        )
    click.echo(f"{len(views)} of {total} shown.")


# ── token ────────────────────────────────────────────────────────


@cli.command()
@click.argument("user_id", type=int)
@click.option("--hours", type=int, default=24, help="Token lifetime.")
@click.pass_context
def token(ctx: click.Context, user_id: int, hours: int) -> None:
    """Mint a bearer token for USER_ID (development only)."""
    from campusboard.api.auth import create_token

    config = _load_config(ctx.obj["config_path"])
    if not config.api.jwt_secret:
        _error(f"No JWT secret configured (set {config.api.jwt_secret_env}).")
        return
    click.echo(create_token(user_id, config.api.jwt_secret, hours))


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Bind address (default: api.host).")
@click.option("--port", type=int, default=None, help="Port (default: api.port).")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    from campusboard.api.app import create_app

    config = _load_config(ctx.obj["config_path"])
    if not config.api.jwt_secret:
        click.echo(
            f"Warning: no JWT secret; set {config.api.jwt_secret_env} to enable auth.",
            err=True,
        )

    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.api.host,
        port=port or config.api.port,
        reload=reload,
    )
