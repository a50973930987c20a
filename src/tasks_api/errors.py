"""
Error types raised by the Tasks API.

Every AppError carries a machine-readable code and the HTTP status it maps to;
the application shell renders them with ``to_response()``. Unhandled
exceptions, in the main app and in the mounted auth app alike, are rendered by
``server_error_response``.
"""
from __future__ import annotations

import logging
import traceback
from typing import Any, Dict

from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class AppError(Exception):
    """Base exception for errors that map onto an HTTP response."""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR", http_status: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status

    def to_response(self) -> Dict[str, Any]:
        return {"message": self.message}


class NotFoundError(AppError):
    """No record matches the requested id."""

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(message, "NOT_FOUND", 404)


class ConfigurationError(AppError):
    """Settings are missing or inconsistent at startup."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", 500)


class DatabaseError(AppError):
    """The persistence layer failed; details stay in the logs."""

    def __init__(self, message: str = "Database operation failed") -> None:
        super().__init__(message, "DATABASE_ERROR", 500)


# PUBLIC_INTERFACE
def server_error_response(request: Request, exc: Exception, include_details: bool) -> JSONResponse:
    """
    Render an unhandled exception as a 500 JSON body.

    The body is ``{"message": "Internal Server Error"}``; ``detail`` and
    ``stack`` are added only when include_details is set. The request id
    assigned by the logging middleware is echoed when present.
    """
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=exc)
    content: Dict[str, Any] = {"message": "Internal Server Error"}
    if include_details:
        content["detail"] = str(exc)
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    request_id = getattr(request.state, "request_id", None)
    headers = {"X-Request-Id": request_id} if request_id else None
    return JSONResponse(status_code=500, content=content, headers=headers)
