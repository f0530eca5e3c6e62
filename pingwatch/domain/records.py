"""Persisted record shapes.

Field names are snake_case in Python and camelCase on disk and on the wire.
`to_record()` produces exactly the dict that is written to the store.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "USERS",
    "TOKENS",
    "CHECKS",
    "Protocol",
    "HttpMethod",
    "Record",
    "User",
    "Token",
    "Check",
]

# Collection names in the record store
USERS = "users"
TOKENS = "tokens"
CHECKS = "checks"

Protocol = Literal["http", "https"]
HttpMethod = Literal["post", "get", "put", "delete"]


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class User(Record):
    first_name: str
    last_name: str
    phone: str
    hashed_password: str
    tos_agreement: bool
    checks: list[str] = Field(default_factory=list)

    def public(self) -> dict[str, Any]:
        """The user as returned to clients: everything but the password hash."""
        return self.model_dump(mode="json", by_alias=True, exclude={"hashed_password"})


class Token(Record):
    id: str
    phone: str
    expires: int  # epoch milliseconds

    def is_active(self, now: int) -> bool:
        return now < self.expires


class Check(Record):
    id: str
    user_phone: str
    protocol: Protocol
    url: str
    method: HttpMethod
    success_codes: list[int]
    timeout_seconds: int
