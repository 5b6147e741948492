from __future__ import annotations

from typing import Protocol

from ..models import Credential, TokenResult


class TokenSource(Protocol):
    """Performs one credential acquisition flow. Raises AuthError on failure."""

    async def acquire(self) -> Credential: ...

    async def close(self) -> None: ...


class TokenStore(Protocol):
    def get(self, scope: str) -> Credential | None: ...

    def put(self, scope: str, credential: Credential) -> None: ...

    def discard(self, scope: str) -> None: ...


class CredentialsProvider(Protocol):
    async def get_token(self) -> TokenResult: ...

    def invalidate(self) -> None: ...
