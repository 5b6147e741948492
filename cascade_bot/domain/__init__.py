from .errors import AuthError, FetchError
from .shared.models import (
    Credential,
    EntitySpec,
    FetchResult,
    FilterExpression,
    Record,
    Selection,
    SelectionChanged,
    TokenResult,
)
from .shared.repositories import CollectionFetcher, CredentialsProvider, TokenSource, TokenStore
from .cascade import CascadeController, CascadePhase, CascadeSnapshot, ChildLoadStatus

__all__ = [
    "AuthError",
    "FetchError",
    "Credential",
    "EntitySpec",
    "FetchResult",
    "FilterExpression",
    "Record",
    "Selection",
    "SelectionChanged",
    "TokenResult",
    "CollectionFetcher",
    "CredentialsProvider",
    "TokenSource",
    "TokenStore",
    "CascadeController",
    "CascadePhase",
    "CascadeSnapshot",
    "ChildLoadStatus",
]
