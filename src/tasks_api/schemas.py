from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

NAME_MAX_LENGTH = 255

INVALID_UPDATES = "invalid_updates"
NO_UPDATES_MESSAGE = "No updates provided"

# bcrypt only looks at the first 72 bytes of a password.
PASSWORD_MAX_BYTES = 72

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _clean_name(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= NAME_MAX_LENGTH):
        raise ValueError(f"name length must be between 1 and {NAME_MAX_LENGTH} characters")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a task. Server-generated fields are not accepted.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Buy milk",
                "completed": False,
            }
        }
    )

    name: str = Field(..., description="Name of the task", min_length=1, max_length=NAME_MAX_LENGTH)
    completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """
        Strip whitespace and enforce the length bounds on the stripped value.
        """
        return _clean_name(v)


# PUBLIC_INTERFACE
class TaskPatch(BaseModel):
    """
    Schema for partially updating a task.
    All fields are optional, but at least one must be supplied and none may be null.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "completed": True,
            }
        }
    )

    name: Optional[str] = Field(
        default=None, description="Name of the task", min_length=1, max_length=NAME_MAX_LENGTH
    )
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("name", "completed")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("value must not be null")
        return _clean_name(v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def require_updates(self) -> "TaskPatch":
        if not self.model_fields_set:
            raise PydanticCustomError(INVALID_UPDATES, NO_UPDATES_MESSAGE)
        return self

    def changes(self) -> dict:
        """Return only the fields the client actually sent."""
        return self.model_dump(include=self.model_fields_set)


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "name": "Buy milk",
                "completed": False,
                "createdAt": "2025-01-25T10:15:30.123456",
                "updatedAt": "2025-01-25T10:15:30.123456",
            }
        },
    )

    id: int = Field(..., description="Unique identifier of the task")
    name: str = Field(..., description="Name of the task")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")


class NotFoundMessage(BaseModel):
    message: str = Field(..., description="Human-readable error message", examples=["Not Found"])


class ValidationErrorBody(BaseModel):
    error: str = Field("ValidationError")
    message: str = Field("Request validation failed")
    detail: list = Field(..., description="Validation issues as reported by pydantic")


class ApiInfo(BaseModel):
    message: str
    version: str
    backend: str
    database: Optional[str] = Field(None, description="\"ok\" or \"unavailable\"; absent for the in-memory backend")


# Session collaborator shapes


class SignUpBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=8, max_length=PASSWORD_MAX_BYTES)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        s = v.strip().lower()
        if not _EMAIL_RE.match(s):
            raise ValueError("invalid email address")
        return s

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, v: str) -> str:
        if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"password must be at most {PASSWORD_MAX_BYTES} bytes")
        return v


class SignInBody(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    email: str
    name: str
    created_at: datetime
    updated_at: datetime


class SessionOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    token: str
    user_id: str
    expires_at: datetime
    created_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
