"""Centralized logging setup for vitals-pipeline.

Every module logs through the single `vitals_pipeline` logger so a run
can be switched between plain text and one-JSON-object-per-line output
with `LOG_FORMAT` without touching call sites. Page-level messages pass
`extra={"page": n}`; JSON lines carry it as a `page` field so a failed
page can be found without parsing the message text.
"""
from __future__ import annotations

import os
import json
import logging
from datetime import datetime, timezone

LOGGER_NAME = "vitals_pipeline"
TEXT_FORMAT = "%(asctime)s %(levelname)s %(message)s"


class JsonFormatter(logging.Formatter):
    def format(self, record):
        base = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "event": record.getMessage(),
            "run_id": os.getenv("RUN_ID", "unknown"),
        }
        page = getattr(record, "page", None)
        if page is not None:
            base["page"] = page
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base)


def _configure_logging():
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    fmt_mode = os.getenv("LOG_FORMAT", "text").lower()  # "text" | "json"
    _logger = logging.getLogger(LOGGER_NAME)
    _logger.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if fmt_mode == "json" else logging.Formatter(TEXT_FORMAT))
    _logger.handlers = [handler]
    _logger.propagate = False
    return _logger


logger = _configure_logging()

__all__ = ["logger", "LOGGER_NAME", "JsonFormatter", "_configure_logging"]
