"""FastAPI app factory: request logging middleware + the dispatcher route."""
from __future__ import annotations

import time
from collections.abc import Callable
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from . import __version__
from .api import router as api_router
from .api.dispatcher import Dispatcher
from .config import Settings, load_settings
from .logging_conf import bind_request_id, get_logger, setup_logging
from .service.auth import TokenService
from .service.checks import CheckHandlers
from .service.handlers import Handlers
from .service.store import RecordStore
from .service.tokens import TokenHandlers
from .service.users import UserHandlers

logger = get_logger("app")


def build_handlers(settings: Settings, store: Optional[RecordStore] = None,
                   auth: Optional[TokenService] = None) -> Handlers:
    """Construct the handler groups once, sharing one store and token service."""
    store = store or RecordStore(settings.data_dir)
    auth = auth or TokenService(store)
    return Handlers(
        users=UserHandlers(store, auth, secret=settings.hashing_secret),
        tokens=TokenHandlers(store, auth, secret=settings.hashing_secret),
        checks=CheckHandlers(store, auth, max_checks=settings.max_checks),
    )


def build_dispatcher(settings: Settings, store: Optional[RecordStore] = None) -> Dispatcher:
    return Dispatcher(build_handlers(settings, store).routes())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    # The dispatcher owns every path, so no docs routes.
    app = FastAPI(title="pingwatch", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.dispatcher = build_dispatcher(settings)

    @app.on_event("startup")
    async def _on_startup() -> None:
        logger.info(
            "startup",
            extra={"event": "startup", "env": settings.env_name, "data_dir": str(settings.data_dir)},
        )

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        logger.info("shutdown", extra={"event": "shutdown"})

    @app.middleware("http")
    async def request_logger(request: Request, call_next: Callable[[Request], Response]):
        """Log request start/end under a correlation id.

        An incoming X-Request-ID is reused, otherwise one is minted; it is
        bound for every log line of the request and echoed on the response.
        """
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        with bind_request_id(request_id):
            start = time.perf_counter()
            logger.info(
                "request.start",
                extra={"event": "request_start", "method": request.method, "path": request.url.path},
            )
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "request.error",
                    extra={"event": "request_error", "path": request.url.path, "method": request.method},
                )
                raise
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000.0

            response.headers["X-Request-ID"] = request_id
            logger.info(
                "request.end",
                extra={
                    "event": "request_end",
                    "status_code": response.status_code,
                    "elapsed_ms": round(elapsed_ms, 2),
                },
            )
            return response

    app.include_router(api_router)

    return app


# ASGI entrypoint for uvicorn: `uvicorn pingwatch.main:app --port 3000`
app = create_app()
