from __future__ import annotations

import asyncio
import logging

import aiohttp

from ...domain import SelectionChanged
from ..http_session import ClientSessionHolder

logger = logging.getLogger(__name__)

EVENT_NAME = "selection-changed"


class SelectionWebhook:
    """Forwards selection-changed events to the host as JSON POSTs. Failures are only logged."""

    def __init__(self, url: str, *, timeout: float | None = 10.0):
        if not url:
            raise ValueError("webhook url is required")
        self._url = url
        self._http = ClientSessionHolder(timeout=timeout)

    async def publish(self, chat_id: int, event: SelectionChanged) -> bool:
        payload = {"event": EVENT_NAME, "chat_id": chat_id, **event.as_payload()}
        session = self._http.get()
        try:
            async with session.post(self._url, json=payload) as resp:
                if not 200 <= resp.status < 300:
                    logger.warning("Selection webhook answered %s for chat %s", resp.status, chat_id)
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Selection webhook failed for chat %s: %s", chat_id, exc)
            return False
        return True

    async def close(self) -> None:
        await self._http.close()
