from .controller import CascadeController, SelectionListener, StateListener
from .state import CascadePhase, CascadeSnapshot, ChildLoadStatus

__all__ = [
    "CascadeController",
    "CascadePhase",
    "CascadeSnapshot",
    "ChildLoadStatus",
    "SelectionListener",
    "StateListener",
]
