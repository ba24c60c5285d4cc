"""JWT bearer identity for the campusboard API.

Tokens are issued elsewhere; this module only verifies them. The
``sub`` claim carries the numeric user id.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from fastapi import HTTPException, Request


def create_token(user_id: int, secret: str, expiry_hours: int = 24) -> str:
    """Create a JWT token (tests and tooling; the forum never issues them)."""
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(UTC) + timedelta(hours=expiry_hours),
        "iat": datetime.now(UTC),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_token(token: str, secret: str) -> dict[str, Any]:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as err:
        raise HTTPException(status_code=401, detail="Token expired") from err
    except jwt.InvalidTokenError as err:
        raise HTTPException(status_code=401, detail="Invalid token") from err


def _secret(request: Request) -> str:
    secret = request.app.state.config.api.jwt_secret
    if not secret:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    return str(secret)


def _user_id_from(request: Request, token: str) -> int:
    payload = decode_token(token, _secret(request))
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as err:
        raise HTTPException(status_code=401, detail="Invalid token subject") from err


async def get_current_user_id(request: Request) -> int:
    """FastAPI dependency: the authenticated user id from the Bearer token."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401, detail="Missing or invalid Authorization header"
        )
    return _user_id_from(request, auth_header.split(" ", 1)[1])


async def get_optional_user_id(request: Request) -> int | None:
    """Like :func:`get_current_user_id`, but anonymous readers get None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return _user_id_from(request, auth_header.split(" ", 1)[1])
