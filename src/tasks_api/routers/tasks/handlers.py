from __future__ import annotations

from typing import Callable, Dict, List

from fastapi import Depends

from ...errors import NotFoundError
from ...repositories import Repository, get_repository
from ...schemas import TaskCreate, TaskOut, TaskPatch
from .routes import TaskId


# PUBLIC_INTERFACE
async def list_tasks(repo: Repository = Depends(get_repository)) -> List[TaskOut]:
    """
    List all tasks.
    """
    items = await repo.list()
    return [TaskOut(**it) for it in items]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
async def create_task(payload: TaskCreate, repo: Repository = Depends(get_repository)) -> TaskOut:
    """
    Create a new task.
    """
    created = await repo.create(payload)
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
async def get_task(task_id: TaskId, repo: Repository = Depends(get_repository)) -> TaskOut:
    """
    Retrieve a single task by its id.
    """
    item = await repo.get(task_id)
    if item is None:
        raise NotFoundError()
    return TaskOut(**item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
async def patch_task(
    task_id: TaskId, payload: TaskPatch, repo: Repository = Depends(get_repository)
) -> TaskOut:
    """
    Partial update of a task. Empty bodies never reach this function: TaskPatch rejects them.
    """
    updated = await repo.update(task_id, payload)
    if updated is None:
        raise NotFoundError()
    return TaskOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
async def remove_task(task_id: TaskId, repo: Repository = Depends(get_repository)) -> None:
    """
    Delete a task. Returns 204 on success, 404 if not found.
    """
    if not await repo.delete(task_id):
        raise NotFoundError()
    return None


HANDLERS: Dict[str, Callable] = {
    "list_tasks": list_tasks,
    "create_task": create_task,
    "get_task": get_task,
    "patch_task": patch_task,
    "remove_task": remove_task,
}
