"""Owner-scoped task persistence.

`TaskStore` is the only code that reads or writes `tasks` rows. Every method
takes the owner id first and filters on it, so a row belonging to another
owner behaves exactly like a row that does not exist.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from uuid import UUID

import sqlalchemy as sa
from fastapi import Depends
from sqlalchemy import delete, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import col, select

from app.core.config import settings
from app.core.errors import NotFoundError, StoreUnavailableError, TaskValidationError
from app.core.logging import get_logger, redact_subject
from app.core.time import utcnow
from app.db.session import get_session
from app.models.tasks import Task

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping
    from datetime import datetime

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)
UPDATABLE_FIELDS = frozenset({"title", "description", "is_completed"})
SESSION_DEP = Depends(get_session)


def _parse_task_id(task_id: UUID | str) -> UUID:
    if isinstance(task_id, UUID):
        return task_id
    try:
        return UUID(str(task_id))
    except ValueError as exc:
        # A malformed id cannot match any row; report it like any other miss.
        raise NotFoundError from exc


def _touched_at(created_at: datetime) -> datetime:
    now = utcnow()
    return now if now >= created_at else created_at


class TaskStore:
    """Scoped CRUD over persisted tasks for a single request session."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        title_max_length: int = 200,
        description_max_length: int = 1000,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.session = session
        self.title_max_length = title_max_length
        self.description_max_length = description_max_length
        self.timeout_seconds = timeout_seconds

    @asynccontextmanager
    async def _bounded(self, operation: str) -> AsyncIterator[None]:
        """Cap the store wait and translate outages to `StoreUnavailableError`."""
        try:
            async with asyncio.timeout(self.timeout_seconds):
                yield
        except (TimeoutError, PoolTimeoutError) as exc:
            logger.warning(
                "task.store.timeout",
                extra={"operation": operation, "timeout_s": self.timeout_seconds},
            )
            raise StoreUnavailableError from exc
        except (OperationalError, InterfaceError) as exc:
            logger.warning(
                "task.store.unavailable",
                extra={"operation": operation, "error_type": exc.__class__.__name__},
            )
            raise StoreUnavailableError from exc

    def _validate_title(self, title: object) -> str:
        if not isinstance(title, str):
            raise TaskValidationError("title must be a string")
        if not title.strip():
            raise TaskValidationError("title must not be empty")
        if len(title) > self.title_max_length:
            raise TaskValidationError(
                f"title must be at most {self.title_max_length} characters",
            )
        return title

    def _validate_description(self, description: object) -> str | None:
        if description is None:
            return None
        if not isinstance(description, str):
            raise TaskValidationError("description must be a string")
        if len(description) > self.description_max_length:
            raise TaskValidationError(
                f"description must be at most {self.description_max_length} characters",
            )
        return description

    @staticmethod
    def _owned(owner_id: str, task_id: UUID) -> tuple[sa.ColumnElement[bool], ...]:
        return (col(Task.id) == task_id, col(Task.owner_id) == owner_id)

    async def list_tasks(self, owner_id: str) -> list[Task]:
        """Return the owner's tasks oldest-first (ties broken by id)."""
        statement = (
            select(Task)
            .where(col(Task.owner_id) == owner_id)
            .order_by(col(Task.created_at).asc(), col(Task.id).asc())
        )
        async with self._bounded("list"):
            return list(await self.session.exec(statement))

    async def create(
        self,
        owner_id: str,
        title: str,
        description: str | None = None,
    ) -> Task:
        """Insert a new, not-completed task for `owner_id`."""
        title = self._validate_title(title)
        description = self._validate_description(description)
        now = utcnow()
        task = Task(
            owner_id=owner_id,
            title=title,
            description=description,
            is_completed=False,
            created_at=now,
            updated_at=now,
        )
        async with self._bounded("create"):
            self.session.add(task)
            await self.session.commit()
            await self.session.refresh(task)
        logger.info(
            "task.create",
            extra={"owner": redact_subject(owner_id), "task_id": str(task.id)},
        )
        return task

    async def get(self, owner_id: str, task_id: UUID | str) -> Task:
        """Load one owned task or raise `NotFoundError`."""
        task_uuid = _parse_task_id(task_id)
        statement = select(Task).where(*self._owned(owner_id, task_uuid))
        async with self._bounded("get"):
            task = (await self.session.exec(statement)).first()
        if task is None:
            raise NotFoundError
        return task

    async def update(
        self,
        owner_id: str,
        task_id: UUID | str,
        fields: Mapping[str, object],
    ) -> Task:
        """Apply a partial update under a row lock; unsent fields are untouched."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise TaskValidationError(f"unknown fields: {', '.join(sorted(unknown))}")
        changes: dict[str, object] = {}
        if "title" in fields:
            changes["title"] = self._validate_title(fields["title"])
        if "description" in fields:
            changes["description"] = self._validate_description(fields["description"])
        if "is_completed" in fields:
            is_completed = fields["is_completed"]
            if not isinstance(is_completed, bool):
                raise TaskValidationError("is_completed must be a boolean")
            changes["is_completed"] = is_completed

        task_uuid = _parse_task_id(task_id)
        statement = (
            select(Task)
            .where(*self._owned(owner_id, task_uuid))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        async with self._bounded("update"):
            task = (await self.session.exec(statement)).first()
            if task is None:
                await self.session.rollback()
                raise NotFoundError
            for key, value in changes.items():
                setattr(task, key, value)
            task.updated_at = _touched_at(task.created_at)
            self.session.add(task)
            await self.session.commit()
            await self.session.refresh(task)
        logger.info(
            "task.update",
            extra={
                "owner": redact_subject(owner_id),
                "task_id": str(task.id),
                "fields": ",".join(sorted(changes)),
            },
        )
        return task

    async def delete(self, owner_id: str, task_id: UUID | str) -> None:
        """Hard-delete an owned task; a repeat delete raises `NotFoundError`."""
        task_uuid = _parse_task_id(task_id)
        statement = delete(Task).where(*self._owned(owner_id, task_uuid))
        async with self._bounded("delete"):
            result = await self.session.exec(statement)  # type: ignore[call-overload]
            if result.rowcount == 0:
                await self.session.rollback()
                raise NotFoundError
            await self.session.commit()
        logger.info(
            "task.delete",
            extra={"owner": redact_subject(owner_id), "task_id": str(task_uuid)},
        )

    async def toggle_complete(self, owner_id: str, task_id: UUID | str) -> Task:
        """Flip `is_completed` in one atomic UPDATE so concurrent toggles never collapse."""
        task_uuid = _parse_task_id(task_id)
        now = utcnow()
        statement = (
            update(Task)
            .where(*self._owned(owner_id, task_uuid))
            .values(
                is_completed=sa.not_(col(Task.is_completed)),
                updated_at=sa.case(
                    (col(Task.created_at) > now, col(Task.created_at)),
                    else_=now,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        reload = (
            select(Task)
            .where(*self._owned(owner_id, task_uuid))
            .execution_options(populate_existing=True)
        )
        async with self._bounded("toggle_complete"):
            result = await self.session.exec(statement)  # type: ignore[call-overload]
            if result.rowcount == 0:
                await self.session.rollback()
                raise NotFoundError
            task = (await self.session.exec(reload)).one()
            await self.session.commit()
        logger.info(
            "task.toggle_complete",
            extra={
                "owner": redact_subject(owner_id),
                "task_id": str(task.id),
                "is_completed": task.is_completed,
            },
        )
        return task


async def get_task_store(session: AsyncSession = SESSION_DEP) -> TaskStore:
    """Build a request-scoped store bound to the request's DB session."""
    return TaskStore(
        session,
        title_max_length=settings.task_title_max_length,
        description_max_length=settings.task_description_max_length,
        timeout_seconds=settings.db_operation_timeout_seconds,
    )
