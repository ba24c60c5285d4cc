"""FastAPI application factory for the campusboard REST API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from campusboard.config.schema import CampusBoardConfig
    from campusboard.integrations.images import ImageStore
    from campusboard.integrations.notifier import Notifier
    from campusboard.integrations.relevance import RelevanceEngine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan handler: open the database on startup, dispose on shutdown."""
    from campusboard.db import create_db

    config: CampusBoardConfig = app.state.config
    factory, engine = await create_db(config)

    app.state.db_factory = factory
    app.state.engine = engine

    yield

    await engine.dispose()


def _default_notifier(config: CampusBoardConfig) -> Notifier:
    from campusboard.integrations.notifier import HttpNotifier, LoggingNotifier

    if config.notifier.enabled and config.notifier.endpoint:
        return HttpNotifier(config.notifier.endpoint, timeout=config.notifier.timeout)
    return LoggingNotifier()


def create_app(
    config: CampusBoardConfig | None = None,
    *,
    images: ImageStore | None = None,
    relevance: RelevanceEngine | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the local image store, keyword relevance,
    and the notifier selected by ``[notifier]``.
    """
    from campusboard import __version__
    from campusboard.config.loader import load_config
    from campusboard.integrations.images import LocalImageStore
    from campusboard.integrations.relevance import KeywordRelevance

    if config is None:
        config = load_config()

    app = FastAPI(
        title="campusboard",
        description="Campus forum threaded-discussion API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.images = images or LocalImageStore(
        config.images.directory, config.images.base_url
    )
    app.state.relevance = relevance or KeywordRelevance()
    app.state.notifier = notifier or _default_notifier(config)

    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from campusboard.api.errors import install_error_handlers

    install_error_handlers(app)

    from campusboard.api.health import router as health_router
    from campusboard.api.routes.announcements import router as announcements_router
    from campusboard.api.routes.comments import router as comments_router
    from campusboard.api.routes.reactions import router as reactions_router
    from campusboard.api.routes.reports import router as reports_router
    from campusboard.api.routes.threads import router as threads_router
    from campusboard.api.routes.topics import router as topics_router
    from campusboard.api.routes.unread import router as unread_router

    app.include_router(threads_router)
    app.include_router(comments_router)
    app.include_router(reactions_router)
    app.include_router(unread_router)
    app.include_router(reports_router)
    app.include_router(announcements_router)
    app.include_router(topics_router)
    app.include_router(health_router)

    return app
