from .credential import Credential, TokenResult
from .record import EntitySpec, FetchResult, FilterExpression, Record
from .selection import Selection, SelectionChanged

__all__ = [
    "Credential",
    "TokenResult",
    "EntitySpec",
    "FetchResult",
    "FilterExpression",
    "Record",
    "Selection",
    "SelectionChanged",
]
