"""FastAPI application factory for kindwatch.

Usage::

    from kindwatch.api.app import create_app

    app = create_app(supervisor=supervisor, store=store)

The factory is designed for use by both the production bootstrap
(``kindwatch.app``) and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kindwatch.api.routes import router
from kindwatch.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(supervisor: Any, store: Any = None) -> FastAPI:
    """Create and configure the kindwatch FastAPI application.

    Args:
        supervisor: WatchSupervisor whose status is reported.
        store:      Optional ResourceStore backing ``/resources``.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kindwatch import __version__

    app = FastAPI(
        title="kindwatch",
        summary="Kubernetes multi-kind resource watcher",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    app.state.supervisor = supervisor
    app.state.store = store

    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        first_msg = str(errors[0].get("msg", "")) if errors else ""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_QUERY", detail=first_msg).model_dump(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        error = "STORE_DISABLED" if exc.status_code == 503 else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=error, detail=str(exc.detail)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
