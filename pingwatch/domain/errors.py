from __future__ import annotations

from typing import Any, Optional

__all__ = [
    "ApiError",
    "InvalidInput",
    "CheckLimitReached",
    "TokenExpired",
    "Forbidden",
    "NotFound",
    "MethodNotAllowed",
    "Conflict",
    "StorageFailure",
    "IntegrityFailure",
]


class ApiError(Exception):
    """Base class for errors a handler reports back to the client.

    `code` is a stable machine-readable identifier and `status_code` the HTTP
    status the dispatcher answers with. `details` carries structured context
    such as the list of failing fields.
    """

    code: str = "error"
    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error_code": self.code,
            "error_message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


# ------------------------
# Client errors
# ------------------------
class InvalidInput(ApiError):
    code = "invalid_input"
    status_code = 400


class CheckLimitReached(InvalidInput):
    code = "check_limit_reached"


class TokenExpired(InvalidInput):
    """The token can no longer be extended; the client must log in again."""

    code = "token_expired"


class Forbidden(ApiError):
    code = "forbidden"
    status_code = 403


class NotFound(ApiError):
    code = "not_found"
    status_code = 404


class MethodNotAllowed(ApiError):
    code = "method_not_allowed"
    status_code = 405


class Conflict(ApiError):
    code = "conflict"
    status_code = 409


# ------------------------
# Server errors
# ------------------------
class StorageFailure(ApiError):
    code = "storage_failure"
    status_code = 500


class IntegrityFailure(ApiError):
    """A cross-record reference that should exist is missing."""

    code = "integrity_failure"
    status_code = 500
