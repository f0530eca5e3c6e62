from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

__all__ = [
    "RequestData",
    "trim_path",
    "parse_json",
]


@dataclass(frozen=True)
class RequestData:
    """Transport-independent view of one inbound request."""

    trimmed_path: str
    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    payload: Any = None

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name.lower())
        return value if isinstance(value, str) else None

    def query_value(self, name: str) -> Optional[str]:
        value = self.query.get(name)
        return value if isinstance(value, str) else None


def trim_path(path: str) -> str:
    """Strip leading and trailing slashes: "/users/" -> "users"."""
    return (path or "").strip("/")


def parse_json(body: bytes | str | None) -> Any:
    """Decode a JSON body, returning None instead of raising on bad input."""
    if not body:
        return None
    try:
        return json.loads(body)
    except (ValueError, TypeError):
        return None
