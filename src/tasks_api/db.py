"""
SQLAlchemy persistence backend.

One async engine per process, sessions rolled back on any error. Update and
delete run as single statements so row-level atomicity comes from the database.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, delete, select, text, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .errors import DatabaseError
from .models import SessionEntity, TaskEntity, UserEntity
from .repositories import AuthRepository, Repository, utcnow
from .schemas import NAME_MAX_LENGTH, TaskCreate, TaskPatch

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class TaskRow(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def to_entity(self) -> TaskEntity:
        return {
            "id": self.id,
            "name": self.name,
            "completed": self.completed,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def to_entity(self) -> UserEntity:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "password_hash": self.password_hash,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class SessionRow(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def to_entity(self) -> SessionEntity:
        return {
            "id": self.id,
            "token": self.token,
            "user_id": self.user_id,
            "expires_at": self.expires_at,
            "created_at": self.created_at,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }


# PUBLIC_INTERFACE
class DatabaseSessionManager:
    """Owns the async engine and hands out sessions that roll back on error."""

    def __init__(self, database_url: str, pool_size: int = 10, max_overflow: int = 10) -> None:
        url = make_url(database_url)
        engine_kwargs: dict = {"pool_pre_ping": True}
        if url.get_backend_name() == "sqlite":
            if url.database and url.database != ":memory:":
                os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        else:
            engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600)

        self.engine = create_async_engine(url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a session; SQLAlchemy failures are rolled back and surfaced as DatabaseError."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Database error: %s", e)
            raise DatabaseError() from e
        finally:
            await session.close()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except DatabaseError:
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


class SQLAlchemyRepository(Repository):
    """
    Task repository backed by SQLAlchemy's async ORM.
    """

    def __init__(self, manager: DatabaseSessionManager) -> None:
        self._db = manager

    async def list(self) -> List[TaskEntity]:
        async with self._db.session() as s:
            rows = (await s.execute(select(TaskRow).order_by(TaskRow.id))).scalars().all()
            return [r.to_entity() for r in rows]

    async def create(self, data: TaskCreate) -> TaskEntity:
        now = utcnow()
        row = TaskRow(name=data.name, completed=data.completed, created_at=now, updated_at=now)
        async with self._db.session() as s:
            s.add(row)
            await s.commit()
            return row.to_entity()

    async def get(self, task_id: int) -> Optional[TaskEntity]:
        async with self._db.session() as s:
            row = await s.get(TaskRow, task_id)
            return row.to_entity() if row else None

    async def update(self, task_id: int, data: TaskPatch) -> Optional[TaskEntity]:
        stmt = (
            update(TaskRow)
            .where(TaskRow.id == task_id)
            .values(**data.changes(), updated_at=utcnow())
            .returning(TaskRow)
        )
        async with self._db.session() as s:
            row = (await s.execute(stmt)).scalar_one_or_none()
            entity = row.to_entity() if row else None
            await s.commit()
            return entity

    async def delete(self, task_id: int) -> bool:
        async with self._db.session() as s:
            result = await s.execute(delete(TaskRow).where(TaskRow.id == task_id))
            await s.commit()
            return result.rowcount > 0


class SQLAlchemyAuthRepository(AuthRepository):
    def __init__(self, manager: DatabaseSessionManager) -> None:
        self._db = manager

    async def create_user(self, user: UserEntity) -> UserEntity:
        async with self._db.session() as s:
            s.add(UserRow(**user))
            try:
                await s.commit()
            except IntegrityError as e:
                await s.rollback()
                raise ValueError("email already registered") from e
            return user.copy()

    async def get_user(self, user_id: str) -> Optional[UserEntity]:
        async with self._db.session() as s:
            row = await s.get(UserRow, user_id)
            return row.to_entity() if row else None

    async def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        async with self._db.session() as s:
            row = (await s.execute(select(UserRow).where(UserRow.email == email))).scalar_one_or_none()
            return row.to_entity() if row else None

    async def create_session(self, session: SessionEntity) -> SessionEntity:
        async with self._db.session() as s:
            s.add(SessionRow(**session))
            await s.commit()
            return session.copy()

    async def get_session(self, token: str) -> Optional[SessionEntity]:
        async with self._db.session() as s:
            row = (await s.execute(select(SessionRow).where(SessionRow.token == token))).scalar_one_or_none()
            return row.to_entity() if row else None

    async def delete_session(self, token: str) -> bool:
        async with self._db.session() as s:
            result = await s.execute(delete(SessionRow).where(SessionRow.token == token))
            await s.commit()
            return result.rowcount > 0
