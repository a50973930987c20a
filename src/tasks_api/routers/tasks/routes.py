"""
Route table for the tasks resource.

Each RouteSpec is pure data: method, path, response model and the possible
responses keyed by status code. The router assembly registers them for
dispatch and FastAPI's OpenAPI generator documents them from the same
registration. Handlers take their request shapes as parameter annotations:
TaskId below for the path, TaskCreate/TaskPatch for bodies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Optional, Tuple

from fastapi import Path, status

from ...schemas import NotFoundMessage, TaskOut, ValidationErrorBody

TaskId = Annotated[int, Path(gt=0, description="Task identifier")]


@dataclass(frozen=True)
class RouteSpec:
    """Declaration of one endpoint."""

    name: str
    method: str
    path: str
    summary: str
    description: str
    status_code: int = status.HTTP_200_OK
    response_model: Optional[Any] = None
    responses: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    tags: Tuple[str, ...] = ("tasks",)

    def options(self) -> Dict[str, Any]:
        """Keyword arguments for APIRouter.add_api_route."""
        return {
            "methods": [self.method],
            "name": self.name,
            "summary": self.summary,
            "description": self.description,
            "status_code": self.status_code,
            "response_model": self.response_model,
            "responses": self.responses,
            "tags": list(self.tags),
        }


_NOT_FOUND = {"model": NotFoundMessage, "description": "Task not found"}
_INVALID_ID = {"model": ValidationErrorBody, "description": "Invalid id error"}


TASK_ROUTES: List[RouteSpec] = [
    RouteSpec(
        name="list_tasks",
        method="GET",
        path="/tasks",
        summary="List Tasks",
        description="Return every task ordered by id.",
        response_model=List[TaskOut],
        responses={200: {"description": "The list of tasks"}},
    ),
    RouteSpec(
        name="create_task",
        method="POST",
        path="/tasks",
        summary="Create Task",
        description="Create a task and return it with its generated id and timestamps.",
        response_model=TaskOut,
        responses={
            200: {"description": "The created task"},
            422: {"model": ValidationErrorBody, "description": "The validation error(s)"},
        },
    ),
    RouteSpec(
        name="get_task",
        method="GET",
        path="/tasks/{task_id}",
        summary="Get Task",
        description="Return a single task by id.",
        response_model=TaskOut,
        responses={
            200: {"description": "The requested task"},
            404: _NOT_FOUND,
            422: _INVALID_ID,
        },
    ),
    RouteSpec(
        name="patch_task",
        method="PATCH",
        path="/tasks/{task_id}",
        summary="Update Task",
        description="Update the supplied fields of a task. At least one field is required.",
        response_model=TaskOut,
        responses={
            200: {"description": "The updated task"},
            404: _NOT_FOUND,
            422: {"model": ValidationErrorBody, "description": "The validation error(s)"},
        },
    ),
    RouteSpec(
        name="remove_task",
        method="DELETE",
        path="/tasks/{task_id}",
        summary="Delete Task",
        description="Delete a task by id.",
        status_code=status.HTTP_204_NO_CONTENT,
        responses={
            204: {"description": "Task deleted"},
            404: _NOT_FOUND,
            422: _INVALID_ID,
        },
    ),
]
