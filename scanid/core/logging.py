from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var

# Keys owned by the formatter; structured fields may not overwrite them.
RESERVED_KEYS = frozenset({"timestamp", "level", "logger", "message", "request_id", "principal", "exception"})

# The request middleware already emits one line per request.
QUIETED_LOGGERS = ("uvicorn.access",)


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, carrying the scan request's correlation id.

    Structured fields are passed as ``extra={"extra_data": {...}}`` and merged
    at the top level. A field that collides with a reserved key is kept under
    ``field_<name>`` instead of replacing it.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, object] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in (("request_id", request_id_ctx_var.get()), ("principal", principal_ctx_var.get())):
            if value:
                payload[key] = value

        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            for key, value in extra.items():
                payload[f"field_{key}" if key in RESERVED_KEYS else key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str | int = logging.INFO, stream: IO[str] | None = None) -> logging.Handler:
    """Route every logger through a single JSON handler on the root logger."""

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonLogFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel(level)
    for name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
    for name in QUIETED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
