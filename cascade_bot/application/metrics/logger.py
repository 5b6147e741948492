from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from ...infrastructure.metrics import metrics


class ResilientTimedRotatingFileHandler(TimedRotatingFileHandler):
    """Reopens the target file when something deletes it under a running process."""

    def emit(self, record):
        if self.stream and not Path(self.baseFilename).exists():
            try:
                self.stream.close()
            except OSError:
                pass
            self.stream = self._open()
        super().emit(record)


def configure_metrics_logger(
    path: str,
    *,
    when: str = "midnight",
    backups: int = 14,
    logger_name: str = "metrics.actions",
) -> logging.Logger:
    """
    Route metric spans (token acquisition, fetches, bot actions) to a JSON-lines
    file rotated by time, and point the shared metrics client at it.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    already_attached = logger.handlers and all(
        getattr(handler, "baseFilename", None) == os.path.abspath(target)
        for handler in logger.handlers
    )
    if not already_attached:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
        handler = ResilientTimedRotatingFileHandler(
            filename=target,
            when=when,
            backupCount=backups,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    metrics.configure(logger)
    return logger
