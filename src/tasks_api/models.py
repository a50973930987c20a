from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    Storage-neutral representation of a task as returned by repositories.

    Fields:
    - id: Unique integer identifier, assigned by the store
    - name: Task name (1..255 chars, trimmed on input via schemas)
    - completed: Boolean completion flag
    - created_at: Naive UTC creation timestamp
    - updated_at: Naive UTC timestamp of the last mutation
    """

    id: int
    name: str
    completed: bool
    created_at: datetime
    updated_at: datetime


class UserEntity(TypedDict):
    id: str
    email: str
    name: str
    password_hash: str
    created_at: datetime
    updated_at: datetime


class SessionEntity(TypedDict):
    id: str
    token: str
    user_id: str
    expires_at: datetime
    created_at: datetime
    ip_address: Optional[str]
    user_agent: Optional[str]
