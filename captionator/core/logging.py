"""
Purpose:
- Configure the root logger once at startup (text for local dev, JSON for log shippers).
- Quiet the chatty HTTP/DB client loggers so our own messages stay visible.
"""

from __future__ import annotations
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from .settings import settings

# LogRecord attributes that are not user-supplied `extra=` fields
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "pymongo", "multipart")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra=` fields land under "labels"."""

    def format(self, record: logging.LogRecord) -> str:
        obj: dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            obj["error.type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            obj["error.stack_trace"] = self.formatException(record.exc_info)
        labels = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}
        if labels:
            obj["labels"] = labels
        return json.dumps(obj, ensure_ascii=False, default=str)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    level_name = (level or settings.log_level).upper()
    numeric = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric)
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    if (fmt or settings.log_format) == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
