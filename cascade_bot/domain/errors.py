from __future__ import annotations


class AuthError(Exception):
    """Credential acquisition failed."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class FetchError(Exception):
    """Data endpoint answered with a non-success status or an unreadable body.

    ``status`` is 0 when the request never produced an HTTP response
    (connection error, timeout).
    """

    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message

    @property
    def unauthorized(self) -> bool:
        return self.status == 401
