"""JSON-lines logging with a request correlation id.

The HTTP middleware binds the request id into a context variable for the
lifetime of the request; `RequestIdFilter` copies it onto every record, so
handler and store logs carry ``request_id`` without passing it around.
Records logged outside a request carry no ``request_id`` key.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from logging import LogRecord
from typing import Any, Optional

__all__ = [
    "JsonFormatter",
    "RequestIdFilter",
    "bind_request_id",
    "current_request_id",
    "get_logger",
    "setup_logging",
]

_request_id: ContextVar[Optional[str]] = ContextVar("pingwatch_request_id", default=None)

# Attribute names of a bare record; anything beyond these was passed via `extra`.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def current_request_id() -> Optional[str]:
    return _request_id.get()


@contextmanager
def bind_request_id(request_id: str) -> Iterator[str]:
    """Make `request_id` the correlation id of everything logged inside the block."""
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    def filter(self, record: LogRecord) -> bool:
        request_id = _request_id.get()
        if request_id is not None and not hasattr(record, "request_id"):
            record.request_id = request_id
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: LogRecord) -> str:  # type: ignore[override]
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        line.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and key not in line
        )
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def setup_logging(level: str | int = os.getenv("LOG_LEVEL", "INFO")) -> None:
    """Send root and uvicorn logs to stdout as JSON lines.

    Idempotent: a root logger that already has handlers is left as is.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())
    root.setLevel(level)
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv = logging.getLogger(name)
        uv.handlers.clear()
        uv.setLevel(level)
        uv.propagate = True


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or "pingwatch")
