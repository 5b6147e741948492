from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ...errors import AuthError


@dataclass(frozen=True)
class Credential:
    token: str = field(repr=False)
    expires_at: float | None = None
    issued_at: float | None = field(default=None, compare=False)

    def is_valid(self, now: float, skew: float = 0.0) -> bool:
        if not self.token:
            return False
        if self.expires_at is None:
            return True
        if self.issued_at is not None:
            # short-lived tokens keep at least half of their lifetime
            skew = min(skew, max(self.expires_at - self.issued_at, 0.0) / 2)
        return now + skew < self.expires_at


@dataclass(frozen=True)
class TokenResult:
    credential: Optional[Credential] = None
    error: Optional[AuthError] = None

    @property
    def ok(self) -> bool:
        return self.credential is not None
