from __future__ import annotations

from typing import Protocol

from ..models import EntitySpec, FetchResult, FilterExpression


class CollectionFetcher(Protocol):
    async def fetch(
        self,
        entity: EntitySpec,
        token: str,
        *,
        filter_expr: FilterExpression | None = None,
    ) -> FetchResult: ...

    async def close(self) -> None: ...
