"""Task model: the single persisted, owner-scoped todo item."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Index
from sqlmodel import Field, SQLModel

from app.core.time import utcnow

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Task(SQLModel, table=True):
    """Todo item owned by exactly one user id taken from a verified token."""

    __tablename__ = "tasks"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (Index("ix_tasks_owner_id_created_at", "owner_id", "created_at"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: str = Field(index=True)

    title: str
    description: str | None = None
    is_completed: bool = Field(default=False)

    # Naive UTC; the column type is explicit so the binding never expects a tzinfo.
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=False), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=False), nullable=False),
    )
