from .collections import CollectionFetcher
from .tokens import CredentialsProvider, TokenSource, TokenStore

__all__ = [
    "CollectionFetcher",
    "CredentialsProvider",
    "TokenSource",
    "TokenStore",
]
