from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..domain.errors import ApiError, StorageFailure
from ..domain.request import RequestData
from ..logging_conf import get_logger
from ..service.handlers import Handler, HandlerResult, not_found
from ..service.store import StoreError

__all__ = ["Dispatcher", "normalize_result"]

logger = get_logger("api.dispatcher")


def normalize_result(status: Any, payload: Any) -> tuple[int, Any]:
    """Default a missing/invalid status to 200 and payload to {}."""
    if not isinstance(status, int) or isinstance(status, bool) or not 100 <= status <= 599:
        status = 200
    if not isinstance(payload, (dict, list)):
        payload = {}
    return status, payload


class Dispatcher:
    """Routes a trimmed path to its handler through a fixed table."""

    def __init__(self, routes: Mapping[str, Handler]) -> None:
        self._routes = dict(routes)

    @property
    def paths(self) -> list[str]:
        return sorted(self._routes)

    async def dispatch(self, data: RequestData) -> tuple[int, Any]:
        handler = self._routes.get(data.trimmed_path, not_found)
        try:
            result: HandlerResult = await handler(data)
            status, payload = result
        except ApiError as e:
            status, payload = e.status_code, e.to_payload()
            self._log_error(data, e)
        except StoreError as e:
            err = StorageFailure("The record store could not complete the request")
            status, payload = err.status_code, err.to_payload()
            logger.error(
                "dispatch.storage_error",
                extra={
                    "event": "dispatch_storage_error",
                    "path": data.trimmed_path,
                    "method": data.method,
                    "error": str(e),
                },
            )
        return normalize_result(status, payload)

    @staticmethod
    def _log_error(data: RequestData, e: ApiError) -> None:
        level = logger.error if e.status_code >= 500 else logger.info
        level(
            "dispatch.error",
            extra={
                "event": "dispatch_error",
                "path": data.trimmed_path,
                "method": data.method,
                "status_code": e.status_code,
                "error_code": e.code,
            },
        )
