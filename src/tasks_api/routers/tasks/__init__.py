from __future__ import annotations

from typing import Callable, Dict, Iterable

from fastapi import APIRouter

from .handlers import HANDLERS
from .routes import TASK_ROUTES, RouteSpec


# PUBLIC_INTERFACE
def bind_routes(routes: Iterable[RouteSpec], handlers: Dict[str, Callable]) -> APIRouter:
    """Register every route descriptor on a new router with its handler."""
    router = APIRouter()
    for spec in routes:
        router.add_api_route(spec.path, handlers[spec.name], **spec.options())
    return router


# PUBLIC_INTERFACE
def create_tasks_router() -> APIRouter:
    return bind_routes(TASK_ROUTES, HANDLERS)
