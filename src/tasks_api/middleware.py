"""
Cross-cutting request middleware: request logging, auth-scoped CORS and
session attachment.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, MutableMapping, Tuple

from fastapi import Request
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("tasks_api.request")


class RequestLogger(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call ``extra`` with the request fields."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


class PrefixCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that only applies to paths under ``path_prefix``."""

    def __init__(self, app: ASGIApp, path_prefix: str, **options: Any) -> None:
        super().__init__(app, **options)
        self.path_prefix = path_prefix.rstrip("/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and not _under_prefix(scope["path"], self.path_prefix):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


def _under_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def _log_completed(request: Request, status_code: int, start: float) -> None:
    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    request.state.logger.info(
        "%s %s %s",
        request.method,
        request.url.path,
        status_code,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        },
    )


# PUBLIC_INTERFACE
async def log_requests(request: Request, call_next) -> Response:
    """
    Attach a request-scoped logger and log one line per completed request.

    The request id comes from the inbound X-Request-Id header when present and
    is echoed on the response.
    """
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    request.state.logger = RequestLogger(logger, {"request_id": request_id})

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        # Rendered by the outermost error handler, which echoes the request id.
        _log_completed(request, 500, start)
        raise
    _log_completed(request, response.status_code, start)
    response.headers["X-Request-Id"] = request_id
    return response


# PUBLIC_INTERFACE
async def attach_session(request: Request, call_next) -> Response:
    """
    Resolve the caller's session and store ``user``/``session`` on request.state.

    Anonymous requests and failed lookups get None for both; this stage never
    rejects a request.
    """
    auth = request.app.state.auth
    try:
        data = await auth.get_session(request.headers)
    except Exception:
        getattr(request.state, "logger", logger).warning("Session lookup failed", exc_info=True)
        data = None

    request.state.user = data.user if data else None
    request.state.session = data.session if data else None
    return await call_next(request)
