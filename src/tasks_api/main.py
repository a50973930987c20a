from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from . import __version__
from .auth import Auth
from .docs import configure_docs
from .errors import AppError, server_error_response
from .logging_config import setup_logging
from .middleware import PrefixCORSMiddleware, attach_session, log_requests
from .repositories import build_stores
from .routers import create_tasks_router, index_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "index", "description": "API metadata."},
    {"name": "tasks", "description": "CRUD operations for tasks."},
]

FAVICON_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
    '<text y=".9em" font-size="90">\U0001F525</text></svg>'
)


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": [... pydantic error details ...]
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error(exc.message, extra={"error_code": exc.code, "path": request.url.path})
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            message = f"Not Found - {request.url.path}"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code, content={"message": message}, headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all; internals are only included outside production."""
        return server_error_response(request, exc, include_details=not settings.is_production)


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application: stores, auth collaborator, middleware, routers and docs.

    Middleware runs outermost first: request logging, CORS for the auth prefix,
    session attachment. The auth collaborator is mounted under the auth prefix
    and every other API route under /api.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    stores = build_stores(settings)
    auth = Auth(stores.auth, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if stores.database is not None:
            await stores.database.create_all()
        logger.info("Tasks API started (%s backend, %s)", settings.persistence_backend, settings.env)
        yield
        if stores.database is not None:
            await stores.database.dispose()
        logger.info("Tasks API shutting down")

    app = FastAPI(
        title="Tasks API",
        description="Task management API with session authentication.",
        version=__version__,
        openapi_tags=openapi_tags,
        openapi_url="/doc",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.stores = stores
    app.state.auth = auth

    # Added innermost first.
    app.add_middleware(BaseHTTPMiddleware, dispatch=attach_session)
    app.add_middleware(
        PrefixCORSMiddleware,
        path_prefix=settings.auth_prefix,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["Content-Length"],
        max_age=600,
    )
    app.add_middleware(BaseHTTPMiddleware, dispatch=log_requests)

    _register_exception_handlers(app, settings)

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon() -> Response:
        return Response(content=FAVICON_SVG, media_type="image/svg+xml")

    app.mount(settings.auth_prefix, auth.app, name="auth")
    app.include_router(index_router, prefix="/api")
    app.include_router(create_tasks_router(), prefix="/api")
    configure_docs(app)
    return app
