from .index import router as index_router
from .tasks import create_tasks_router

__all__ = ["index_router", "create_tasks_router"]
