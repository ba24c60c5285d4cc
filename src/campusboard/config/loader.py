"""Configuration loading for campusboard.

Layers, lowest priority first:

    1. model defaults
    2. ``$XDG_CONFIG_HOME/campusboard/config.toml`` (``~/.config`` fallback)
    3. ``./campusboard.toml``
    4. the file named by ``$CAMPUSBOARD_CONFIG``
    5. the ``path`` argument of :func:`load_config`
    6. environment overrides (``$CAMPUSBOARD_DATABASE_URL``)
    7. the ``overrides`` argument of :func:`load_config`

After validation, ``api.jwt_secret`` falls back to the environment
variable named by ``api.jwt_secret_env``.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pydantic

from campusboard.core.errors import ConfigError

from .schema import CampusBoardConfig

if TYPE_CHECKING:
    from collections.abc import Iterator

CONFIG_ENV = "CAMPUSBOARD_CONFIG"
DATABASE_URL_ENV = "CAMPUSBOARD_DATABASE_URL"


def _user_config_path() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    root = Path(xdg) if xdg else Path.home() / ".config"
    return root / "campusboard" / "config.toml"


def _project_config_path() -> Path:
    return Path.cwd() / "campusboard.toml"


def _config_sources(path: str | Path | None) -> Iterator[Path]:
    """Yield config files in merge order.

    Discovered files are optional; files named explicitly must exist.
    """
    for candidate in (_user_config_path(), _project_config_path()):
        if candidate.is_file():
            yield candidate

    named = [(os.environ.get(CONFIG_ENV), f"{CONFIG_ENV} points to non-existent file")]
    named.append((str(path) if path is not None else None, "Config file not found"))
    for value, problem in named:
        if not value:
            continue
        candidate = Path(value)
        if not candidate.is_file():
            raise ConfigError(f"{problem}: {value}")
        yield candidate


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* onto a copy of *base*; nested tables merge key-wise."""
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = _deep_merge(current, value)
        else:
            result[key] = value
    return result


def _env_overrides() -> dict[str, Any]:
    url = os.environ.get(DATABASE_URL_ENV)
    return {"database": {"url": url}} if url else {}


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> CampusBoardConfig:
    """Load, merge, and validate configuration.

    Raises:
        ConfigError: A named file is missing, a file is not valid TOML,
            or the merged result fails validation.
    """
    merged: dict[str, Any] = {}
    for source in _config_sources(path):
        merged = _deep_merge(merged, _read_toml(source))
    merged = _deep_merge(merged, _env_overrides())
    merged = _deep_merge(merged, overrides or {})

    try:
        config = CampusBoardConfig.model_validate(merged)
    except pydantic.ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    api = config.api
    if api.jwt_secret is None and api.jwt_secret_env:
        api.jwt_secret = os.environ.get(api.jwt_secret_env)
    return config
