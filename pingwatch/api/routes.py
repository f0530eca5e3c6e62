from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..domain.request import RequestData, parse_json, trim_path
from ..logging_conf import get_logger
from .dispatcher import Dispatcher

router = APIRouter()
logger = get_logger("api")

_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


async def to_request_data(request: Request) -> RequestData:
    """Normalize a Starlette request into a RequestData."""
    body = await request.body()
    return RequestData(
        trimmed_path=trim_path(request.url.path),
        method=request.method.lower(),
        headers={k.lower(): v for k, v in request.headers.items()},
        query=dict(request.query_params),
        payload=parse_json(body),
    )


@router.api_route("/{path:path}", methods=_METHODS, include_in_schema=False)
async def dispatch(request: Request) -> JSONResponse:
    """Every path and verb goes through the dispatcher's route table."""
    dispatcher: Dispatcher = request.app.state.dispatcher
    data = await to_request_data(request)
    status_code, payload = await dispatcher.dispatch(data)
    return JSONResponse(status_code=status_code, content=payload)
