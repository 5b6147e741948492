from .fetcher import ODATA_HEADERS, RemoteCollectionFetcher

__all__ = ["ODATA_HEADERS", "RemoteCollectionFetcher"]
