"""Shared plumbing for the resource handler groups.

A handler group answers one path. Calling it with a `RequestData` routes on
the lower-cased verb to the matching coroutine and returns a
``(status, payload)`` pair. Failures are raised as `ApiError`s for the
dispatcher to render.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

from pydantic import ValidationError

from ..domain.errors import Forbidden, MethodNotAllowed
from ..domain.records import Record
from ..domain.request import RequestData
from .auth import TokenService
from .store import RecordCorrupt, RecordStore

__all__ = [
    "ALLOWED_METHODS",
    "HandlerResult",
    "Handler",
    "HandlerGroup",
    "Handlers",
    "ping",
    "not_found",
]

ALLOWED_METHODS = ("post", "get", "put", "delete")

HandlerResult = tuple[Optional[int], Any]
Handler = Callable[[RequestData], Awaitable[HandlerResult]]

R = TypeVar("R", bound=Record)


class HandlerGroup:
    """CRUD verbs for one resource kind."""

    resource = ""

    def __init__(self, store: RecordStore, auth: TokenService) -> None:
        self.store = store
        self.auth = auth

    async def __call__(self, data: RequestData) -> HandlerResult:
        if data.method not in ALLOWED_METHODS:
            raise MethodNotAllowed(f"Method {data.method.upper()} is not allowed on {self.resource}")
        operation: Handler = getattr(self, data.method)
        return await operation(data)

    async def post(self, data: RequestData) -> HandlerResult:
        raise MethodNotAllowed(f"Method POST is not allowed on {self.resource}")

    async def get(self, data: RequestData) -> HandlerResult:
        raise MethodNotAllowed(f"Method GET is not allowed on {self.resource}")

    async def put(self, data: RequestData) -> HandlerResult:
        raise MethodNotAllowed(f"Method PUT is not allowed on {self.resource}")

    async def delete(self, data: RequestData) -> HandlerResult:
        raise MethodNotAllowed(f"Method DELETE is not allowed on {self.resource}")

    # ------------------------
    # Helpers
    # ------------------------
    async def require_token_for(self, data: RequestData, phone: str) -> None:
        """Raise Forbidden unless the request's token is valid and bound to `phone`."""
        token = data.header("token")
        if not token:
            raise Forbidden("Missing token header. Please log in")
        if not await self.auth.verify_token(token, phone):
            raise Forbidden("The token is invalid or has expired. Please log in")

    async def load(self, model: type[R], collection: str, key: str) -> R:
        """Read a record and parse it into `model`."""
        raw = await self.store.read(collection, key)
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise RecordCorrupt(collection, key, f"unexpected {model.__name__} shape") from e


async def ping(data: RequestData) -> HandlerResult:
    return 200, None


async def not_found(data: RequestData) -> HandlerResult:
    return 404, None


@dataclass(frozen=True)
class Handlers:
    """Handler groups built once at startup and shared by reference."""

    users: HandlerGroup
    tokens: HandlerGroup
    checks: HandlerGroup

    def routes(self) -> dict[str, Handler]:
        return {
            "ping": ping,
            "users": self.users,
            "tokens": self.tokens,
            "checks": self.checks,
        }
