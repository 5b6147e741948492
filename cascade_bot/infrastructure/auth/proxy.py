from __future__ import annotations

import asyncio
import time
from typing import Callable

import aiohttp

from ...domain import AuthError, Credential
from ..http_session import ClientSessionHolder
from ..mappers import credential_from_payload, error_message_from_body


class ProxyTokenSource:
    """Asks a trusted middleware endpoint to exchange its client secret for a token."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if not endpoint:
            raise ValueError("proxy endpoint is required")
        self._endpoint = endpoint
        self._clock = clock
        self._http = ClientSessionHolder(timeout=timeout)

    async def acquire(self) -> Credential:
        session = self._http.get()
        try:
            async with session.post(self._endpoint, json={}) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    payload = None
                if not 200 <= resp.status < 300:
                    detail = error_message_from_body(payload) or resp.reason or "unknown error"
                    raise AuthError(f"Token request failed: {resp.status} {detail}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AuthError(f"Token request failed: {exc.__class__.__name__} {exc}".strip()) from exc
        return credential_from_payload(payload, self._clock())

    async def close(self) -> None:
        await self._http.close()
