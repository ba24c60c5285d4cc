"""Image storage for thread and comment attachments.

Defines the ``ImageStore`` protocol consumed by the forum core and a
filesystem-backed default.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from campusboard.core.errors import StorageError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@runtime_checkable
class ImageStore(Protocol):
    """Protocol that all image backends must satisfy."""

    async def save(self, data: bytes, suffix: str = ".jpg") -> str:
        """Store *data* and return a stable URL for it."""
        ...

    async def delete(self, urls: Iterable[str]) -> None:
        """Remove the files behind *urls*. Unknown URLs are ignored."""
        ...


class LocalImageStore:
    """Writes images under *directory*, served at ``base_url/<name>``."""

    def __init__(self, directory: str | Path, base_url: str = "/images") -> None:
        self._directory = Path(directory).expanduser()
        self._base_url = base_url.rstrip("/")

    @property
    def directory(self) -> Path:
        return self._directory

    async def save(self, data: bytes, suffix: str = ".jpg") -> str:
        name = f"{uuid.uuid4().hex}{suffix}"
        path = self._directory / name
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            msg = f"Failed to store image {name}: {e}"
            raise StorageError(msg) from e
        logger.debug("Stored image %s (%d bytes)", name, len(data))
        return f"{self._base_url}/{name}"

    async def delete(self, urls: Iterable[str]) -> None:
        for url in urls:
            path = self._path_for(url)
            if path is None:
                logger.warning("Ignoring foreign image URL %s", url)
                continue
            try:
                await asyncio.to_thread(path.unlink, missing_ok=True)
            except OSError as e:
                msg = f"Failed to delete image {url}: {e}"
                raise StorageError(msg) from e

    def _path_for(self, url: str) -> Path | None:
        prefix = f"{self._base_url}/"
        if not url.startswith(prefix):
            return None
        name = url[len(prefix) :]
        if not name or "/" in name or name in {".", ".."}:
            return None
        return self._directory / name

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
