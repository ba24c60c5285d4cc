"""Outbound announcement delivery (SMS gateway, push relay, ...).

Delivery is best-effort: callers log failures and never roll back the
unread rows they already wrote.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from campusboard.core.errors import StorageError

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    async def notify_announcement(
        self, sender: str, title: str, numbers: Sequence[str]
    ) -> None:
        """Deliver an announcement notice to the given contact numbers."""
        ...


class LoggingNotifier:
    """Default notifier: records the delivery request in the log only."""

    async def notify_announcement(
        self, sender: str, title: str, numbers: Sequence[str]
    ) -> None:
        logger.info(
            "Announcement %r from %s for %d recipients", title, sender, len(numbers)
        )


class HttpNotifier:
    """POSTs a JSON payload to a delivery gateway."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._client = client

    async def notify_announcement(
        self, sender: str, title: str, numbers: Sequence[str]
    ) -> None:
        if not numbers:
            return
        payload = {"sender": sender, "title": title, "numbers": list(numbers)}
        try:
            if self._client is not None:
                resp = await self._client.post(self._endpoint, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._endpoint, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            msg = f"Notifier delivery to {self._endpoint} failed: {e}"
            raise StorageError(msg) from e
        logger.info("Delivered announcement %r to %d numbers", title, len(numbers))
