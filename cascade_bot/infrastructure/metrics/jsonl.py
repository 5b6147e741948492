from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any


class MetricsClient:
    def __init__(self):
        self._logger = logging.getLogger("metrics.actions")

    def configure(self, logger: logging.Logger | None = None) -> None:
        if logger:
            self._logger = logger

    def _emit(
        self,
        action: str,
        duration_ms: float,
        success: bool,
        *,
        source: str | None,
        extra: dict | None,
        error: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "duration_ms": round(duration_ms, 3),
            "success": success,
        }
        if source:
            payload["source"] = source
        if error:
            payload["error"] = error
        if extra:
            payload.update(extra)
        self._logger.info(json.dumps(payload, ensure_ascii=False))

    @asynccontextmanager
    async def span_async(self, action: str, *, source: str | None = None, extra: dict | None = None):
        """Time an awaited block.

        ``extra`` is read when the span closes, so callers may add keys
        (status codes, record counts) while the block runs.
        """
        start = time.perf_counter()
        success = True
        error = None
        try:
            yield
        except Exception as exc:
            success = False
            error = exc.__class__.__name__
            raise
        finally:
            duration = (time.perf_counter() - start) * 1000
            if extra and extra.get("success") is False:
                success = False
                extra = {k: v for k, v in extra.items() if k != "success"}
            self._emit(action, duration, success, source=source, extra=extra, error=error)


metrics = MetricsClient()
