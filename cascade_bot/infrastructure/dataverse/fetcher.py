from __future__ import annotations

import asyncio
import logging

import aiohttp

from ...domain import EntitySpec, FetchError, FetchResult, FilterExpression
from ..http_session import ClientSessionHolder
from ..mappers import error_message_from_body, record_from_row
from ..metrics import metrics

logger = logging.getLogger(__name__)

ODATA_HEADERS = {
    "Accept": "application/json",
    "OData-MaxVersion": "4.0",
    "OData-Version": "4.0",
}


class RemoteCollectionFetcher:
    """
    Reads one entity collection from an OData Web API.

    Always returns a FetchResult; transport problems, non-success statuses
    and unreadable bodies all end up in ``FetchResult.error``. Makes exactly
    one request per call.
    """

    def __init__(
        self,
        base_url: str,
        *,
        request_timeout: float | None = None,
        select_fields: bool = False,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._select_fields = select_fields
        self._http = ClientSessionHolder(timeout=request_timeout, headers=ODATA_HEADERS)

    def url_for(self, entity: EntitySpec) -> str:
        return f"{self._base_url}/{entity.entity_set.strip('/')}"

    def build_params(self, entity: EntitySpec, filter_expr: FilterExpression | None = None) -> dict[str, str]:
        params: dict[str, str] = {}
        if filter_expr is not None:
            params["$filter"] = filter_expr.render()
        if self._select_fields:
            params["$select"] = ",".join(entity.fields)
        return params

    async def fetch(
        self,
        entity: EntitySpec,
        token: str,
        *,
        filter_expr: FilterExpression | None = None,
    ) -> FetchResult:
        extra: dict = {"entity": entity.entity_set}
        async with metrics.span_async("dataverse:fetch", source="dataverse", extra=extra):
            result = await self._fetch(entity, token, filter_expr)
            if result.error is not None:
                extra.update(success=False, status=result.error.status)
            else:
                extra["records"] = len(result.records)
        return result

    async def _fetch(
        self,
        entity: EntitySpec,
        token: str,
        filter_expr: FilterExpression | None,
    ) -> FetchResult:
        session = self._http.get()
        headers = {"Authorization": f"Bearer {token}"}
        params = self.build_params(entity, filter_expr)
        try:
            async with session.get(self.url_for(entity), headers=headers, params=params) as resp:
                try:
                    body = await resp.json(content_type=None)
                    malformed = False
                except ValueError:
                    body = None
                    malformed = True
                status = resp.status
                reason = resp.reason or ""
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("Request to %s failed: %s", entity.entity_set, message)
            return FetchResult(error=FetchError(0, message))

        if not 200 <= status < 300:
            message = error_message_from_body(body) or reason or f"HTTP {status}"
            return FetchResult(error=FetchError(status, message))
        if malformed or (body is not None and not isinstance(body, dict)):
            return FetchResult(error=FetchError(status, "Malformed response body"))

        rows = (body or {}).get("value")
        if not isinstance(rows, list):
            return FetchResult()
        records = []
        for row in rows:
            record = record_from_row(row, entity) if isinstance(row, dict) else None
            if record is None:
                logger.warning("Skipping %s row without %s", entity.entity_set, entity.id_field)
                continue
            records.append(record)
        return FetchResult(records=tuple(records))

    async def close(self) -> None:
        await self._http.close()
