"""Task API schemas for create, partial update, and read payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Self
from uuid import UUID

from pydantic import Field, StrictBool, StrictStr, model_validator
from sqlmodel import SQLModel
from sqlmodel._compat import SQLModelConfig

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)
NON_NULLABLE_UPDATE_FIELDS = ("title", "is_completed")


class TaskCreate(SQLModel):
    """Payload for creating a task; the owner always comes from the token."""

    model_config = SQLModelConfig(extra="forbid")

    title: StrictStr = Field(
        description="Short task title; must not be blank.",
        examples=["Buy milk"],
    )
    description: StrictStr | None = Field(
        default=None,
        description="Optional free-form notes.",
        examples=["2 litres, semi-skimmed"],
    )


class TaskUpdate(SQLModel):
    """Partial update payload; only the fields sent are changed."""

    model_config = SQLModelConfig(extra="forbid")

    title: StrictStr | None = None
    description: StrictStr | None = None
    is_completed: StrictBool | None = None

    @model_validator(mode="after")
    def _reject_explicit_nulls(self) -> Self:
        for name in NON_NULLABLE_UPDATE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, object]:
        """Return only the fields the client actually supplied."""
        return self.model_dump(exclude_unset=True)


class TaskRead(SQLModel):
    """Task payload returned by every task endpoint."""

    id: UUID = Field(examples=["11111111-1111-1111-1111-111111111111"])
    owner_id: str = Field(
        description="Subject claim of the owning user.",
        examples=["user_2abcXYZ"],
    )
    title: str = Field(examples=["Buy milk"])
    description: str | None = Field(default=None, examples=[None])
    is_completed: bool = Field(examples=[False])
    created_at: datetime
    updated_at: datetime
