from __future__ import annotations

from ...domain import Credential


class MemoryTokenStore:
    """Keeps at most one credential per auth scope for the life of the process."""

    def __init__(self):
        self._credentials: dict[str, Credential] = {}

    def get(self, scope: str) -> Credential | None:
        return self._credentials.get(scope)

    def put(self, scope: str, credential: Credential) -> None:
        self._credentials[scope] = credential

    def discard(self, scope: str) -> None:
        self._credentials.pop(scope, None)

    def clear(self) -> None:
        self._credentials.clear()


process_token_store = MemoryTokenStore()
