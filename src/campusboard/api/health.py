"""Health check endpoints."""

from __future__ import annotations

import os
import time
from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from campusboard.integrations.images import LocalImageStore

router = APIRouter(tags=["health"])

_START_TIME = time.monotonic()


@router.get("/api/health")
async def health() -> dict[str, str]:
    """Liveness probe; touches nothing."""
    return {"status": "ok"}


async def _database_status(request: Request) -> dict[str, str]:
    try:
        async with request.app.state.db_factory() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return {"status": "error", "detail": str(e)}
    return {"status": "ok"}


def _images_status(request: Request) -> dict[str, str]:
    store = getattr(request.app.state, "images", None)
    if store is None:
        return {"status": "disabled"}
    if not isinstance(store, LocalImageStore):
        return {"status": "ok"}
    # The directory is created on first upload; until then its parent must be writable.
    target = store.directory
    while not target.exists() and target != target.parent:
        target = target.parent
    if not os.access(target, os.W_OK):
        return {"status": "error", "detail": f"{store.directory} is not writable"}
    return {"status": "ok"}


@router.get("/api/health/detailed")
async def health_detailed(request: Request) -> dict[str, Any]:
    """Database and image-store status plus version and uptime."""
    from campusboard import __version__

    components = {
        "database": await _database_status(request),
        "images": _images_status(request),
    }
    degraded = any(c["status"] == "error" for c in components.values())
    return {
        "status": "degraded" if degraded else "ok",
        "version": __version__,
        "uptime_seconds": round(time.monotonic() - _START_TIME, 1),
        "components": components,
    }
