"""Map the campusboard exception hierarchy onto HTTP responses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi.responses import JSONResponse

from campusboard.core.errors import (
    CampusBoardError,
    ConfigError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ReactionStateError,
    StorageError,
    ValidationError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
_STATUS: tuple[tuple[type[CampusBoardError], int], ...] = (
    (NotFoundError, 404),
    (ReactionStateError, 409),
    (ForbiddenError, 403),
    (InvalidTransitionError, 409),
    (ValidationError, 422),
    (ConfigError, 500),
    (StorageError, 500),
)


def status_for(error: CampusBoardError) -> int:
    for cls, status in _STATUS:
        if isinstance(error, cls):
            return status
    return 500


async def _handle(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, CampusBoardError):
        raise exc
    status = status_for(exc)
    if status >= 500:
        logger.exception("Error during %s %s", request.method, request.url.path)
        detail = "Internal storage error" if isinstance(exc, StorageError) else str(exc)
    else:
        detail = str(exc)
    return JSONResponse(
        status_code=status,
        content={"detail": detail, "error": type(exc).__name__},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CampusBoardError, _handle)
