"""
One-line JSON logging for the API process.

Every record carries timestamp (UTC ISO8601), level, logger, service,
environment and message. Structured fields passed with
`logger.info(msg, extra={...})` are merged into the JSON object.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from smartnotes.api.config import get_settings

# Attributes every LogRecord has; anything else on the record came from `extra=`
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line with stable keys."""

    def format(self, record: logging.LogRecord) -> str:
        settings = get_settings()
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "service": settings.service_name,
            "environment": settings.environment,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and key not in entry:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["error"] = {
                "class": record.exc_info[0].__name__,
                "message": str(record.exc_info[1])[:500],
            }
        return json.dumps(entry, ensure_ascii=False, default=repr)


# PUBLIC_INTERFACE
def setup_logging() -> None:
    """Route the root logger through one JSON stream handler."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
