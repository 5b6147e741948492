from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable

from ...domain import AuthError, Credential, TokenResult, TokenSource, TokenStore
from ..metrics import metrics
from .store import process_token_store

logger = logging.getLogger(__name__)


class CachedCredentialProvider:
    """
    Hands out a bearer credential, acquiring it through ``source`` only when
    the stored one is missing or about to expire.

    Concurrent callers that arrive while an acquisition is running all await
    that same attempt, so the source runs at most once at a time.
    """

    def __init__(
        self,
        source: TokenSource,
        *,
        scope: str,
        store: TokenStore | None = None,
        expiry_skew_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self._source = source
        self._scope = scope
        self._store = store if store is not None else process_token_store
        self._skew = expiry_skew_seconds
        self._clock = clock
        self._inflight: asyncio.Task[TokenResult] | None = None

    @property
    def scope(self) -> str:
        return self._scope

    async def get_token(self) -> TokenResult:
        cached = self._store.get(self._scope)
        if cached is not None and cached.is_valid(self._clock(), self._skew):
            return TokenResult(credential=cached)
        if self._inflight is None:
            if cached is not None:
                logger.info("Stored credential for %s expired, acquiring a new one", self._scope)
                self._store.discard(self._scope)
            self._inflight = asyncio.ensure_future(self._acquire())
        return await asyncio.shield(self._inflight)

    def invalidate(self) -> None:
        logger.info("Invalidating credential for %s", self._scope)
        self._store.discard(self._scope)

    async def close(self) -> None:
        await self._source.close()

    async def _acquire(self) -> TokenResult:
        try:
            async with metrics.span_async("auth:acquire", source="auth", extra={"scope": self._scope}):
                credential = await self._source.acquire()
            if not isinstance(credential, Credential) or not credential.token:
                raise AuthError("Token source returned an empty credential")
        except AuthError as exc:
            logger.warning("Credential acquisition for %s failed: %s", self._scope, exc.reason)
            return TokenResult(error=exc)
        except Exception as exc:
            logger.exception("Credential acquisition for %s failed unexpectedly", self._scope)
            return TokenResult(error=AuthError(str(exc) or exc.__class__.__name__))
        finally:
            self._inflight = None
        if credential.issued_at is None:
            credential = replace(credential, issued_at=self._clock())
        self._store.put(self._scope, credential)
        logger.info("Acquired credential for %s (expires_at=%s)", self._scope, credential.expires_at)
        return TokenResult(credential=credential)
