from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from .. import __version__
from ..schemas import ApiInfo

router = APIRouter(tags=["index"])


# PUBLIC_INTERFACE
@router.get("/", response_model=ApiInfo, response_model_exclude_none=True, summary="API Index")
async def index(request: Request) -> ApiInfo:
    """
    API metadata: name, version, the active persistence backend and, for the
    database backend, whether the database answers.
    """
    database: Optional[str] = None
    manager = request.app.state.stores.database
    if manager is not None:
        database = "ok" if await manager.health_check() else "unavailable"
    return ApiInfo(
        message="Tasks API",
        version=__version__,
        backend=request.app.state.settings.persistence_backend,
        database=database,
    )
