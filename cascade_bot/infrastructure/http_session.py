from __future__ import annotations

import aiohttp


class ClientSessionHolder:
    """Lazily opens one aiohttp session and reopens it if it was closed.

    ``timeout`` is the total per-request budget in seconds; ``None`` disables it.
    """

    def __init__(self, *, timeout: float | None = None, headers: dict[str, str] | None = None):
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._session: aiohttp.ClientSession | None = None

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def get(self) -> aiohttp.ClientSession:
        if not self._session or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=self._headers)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
