"""
Structured logging setup.

JSON lines in production, a human-readable format in development. Request
fields (request_id, method, path, status_code, duration_ms) are included when
the record carries them.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = ("request_id", "method", "path", "status_code", "duration_ms", "error_code")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


# PUBLIC_INTERFACE
def setup_logging(level: str = "info", fmt: str = "text") -> None:
    """Configure the root logger once; repeated calls replace the handler instead of stacking."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_tasks_api", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._tasks_api = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
