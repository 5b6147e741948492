from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import AuthError, FetchError
from ..shared.models import Record, Selection


class CascadePhase(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    PARENT_SELECTED = "parent_selected"


class ChildLoadStatus(Enum):
    LOADED = "loaded"
    CLEARED = "cleared"
    SUPERSEDED = "superseded"
    FAILED = "failed"


@dataclass(frozen=True)
class CascadeSnapshot:
    phase: CascadePhase
    selection: Selection
    parents: tuple[Record, ...] = ()
    children: tuple[Record, ...] = ()
    loading_children: bool = False
    epoch: int = 0
    auth_error: Optional[AuthError] = None
    parent_error: Optional[FetchError] = None
    child_error: Optional[FetchError | AuthError] = None

    @property
    def child_selector_enabled(self) -> bool:
        return self.selection.has_parent

    @property
    def has_error(self) -> bool:
        return any((self.auth_error, self.parent_error, self.child_error))
