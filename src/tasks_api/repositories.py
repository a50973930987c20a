from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Optional

from fastapi import Request

from .models import SessionEntity, TaskEntity, UserEntity
from .schemas import TaskCreate, TaskPatch
from .settings import Settings

if TYPE_CHECKING:
    from .db import DatabaseSessionManager


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in `timestamp without time zone` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task storage backends."""

    @abstractmethod
    async def list(self) -> List[TaskEntity]:
        """Return every task ordered by id ascending."""

    @abstractmethod
    async def create(self, data: TaskCreate) -> TaskEntity:
        """Insert a task with server-generated id and timestamps and return it."""

    @abstractmethod
    async def get(self, task_id: int) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    async def update(self, task_id: int, data: TaskPatch) -> Optional[TaskEntity]:
        """Apply the supplied fields, refresh updated_at. Return the task or None if not found."""

    @abstractmethod
    async def delete(self, task_id: int) -> bool:
        """Delete a task by id. Return True if deleted, False if not found."""


# PUBLIC_INTERFACE
class AuthRepository(ABC):
    """Storage contract for users and sessions owned by the session collaborator."""

    @abstractmethod
    async def create_user(self, user: UserEntity) -> UserEntity:
        """Insert a user. Raise ValueError if the email is taken."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserEntity]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        ...

    @abstractmethod
    async def create_session(self, session: SessionEntity) -> SessionEntity:
        ...

    @abstractmethod
    async def get_session(self, token: str) -> Optional[SessionEntity]:
        ...

    @abstractmethod
    async def delete_session(self, token: str) -> bool:
        ...


class InMemoryRepository(Repository):
    """
    In-memory task repository for tests and throwaway runs.

    Methods never await while touching the dict, so each call is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._items: Dict[int, TaskEntity] = {}
        self._next_id = 1

    async def list(self) -> List[TaskEntity]:
        return [self._items[k].copy() for k in sorted(self._items)]

    async def create(self, data: TaskCreate) -> TaskEntity:
        now = utcnow()
        entity: TaskEntity = {
            "id": self._next_id,
            "name": data.name,
            "completed": data.completed,
            "created_at": now,
            "updated_at": now,
        }
        self._next_id += 1
        self._items[entity["id"]] = entity
        return entity.copy()

    async def get(self, task_id: int) -> Optional[TaskEntity]:
        item = self._items.get(task_id)
        return None if item is None else item.copy()

    async def update(self, task_id: int, data: TaskPatch) -> Optional[TaskEntity]:
        existing = self._items.get(task_id)
        if existing is None:
            return None

        updated = existing.copy()
        updated.update(data.changes())  # type: ignore[typeddict-item]
        updated["updated_at"] = utcnow()
        self._items[task_id] = updated
        return updated.copy()

    async def delete(self, task_id: int) -> bool:
        return self._items.pop(task_id, None) is not None


class InMemoryAuthRepository(AuthRepository):
    def __init__(self) -> None:
        self._users: Dict[str, UserEntity] = {}
        self._sessions: Dict[str, SessionEntity] = {}

    async def create_user(self, user: UserEntity) -> UserEntity:
        if any(u["email"] == user["email"] for u in self._users.values()):
            raise ValueError("email already registered")
        self._users[user["id"]] = user.copy()
        return user.copy()

    async def get_user(self, user_id: str) -> Optional[UserEntity]:
        user = self._users.get(user_id)
        return None if user is None else user.copy()

    async def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        for user in self._users.values():
            if user["email"] == email:
                return user.copy()
        return None

    async def create_session(self, session: SessionEntity) -> SessionEntity:
        self._sessions[session["token"]] = session.copy()
        return session.copy()

    async def get_session(self, token: str) -> Optional[SessionEntity]:
        session = self._sessions.get(token)
        return None if session is None else session.copy()

    async def delete_session(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None


@dataclass
class Stores:
    """Process-wide persistence handles, built once at application start."""

    tasks: Repository
    auth: AuthRepository
    database: Optional["DatabaseSessionManager"] = None


# PUBLIC_INTERFACE
def build_stores(settings: Settings) -> Stores:
    """
    Return the repositories for the configured backend.
    - memory: InMemoryRepository / InMemoryAuthRepository
    - database: SQLAlchemy repositories sharing one async engine
    """
    if settings.persistence_backend == "memory":
        return Stores(tasks=InMemoryRepository(), auth=InMemoryAuthRepository())

    from .db import DatabaseSessionManager, SQLAlchemyAuthRepository, SQLAlchemyRepository

    manager = DatabaseSessionManager(settings.database_url)
    return Stores(
        tasks=SQLAlchemyRepository(manager),
        auth=SQLAlchemyAuthRepository(manager),
        database=manager,
    )


# PUBLIC_INTERFACE
def get_repository(request: Request) -> Repository:
    """FastAPI dependency returning the task repository attached to the running app."""
    return request.app.state.stores.tasks
