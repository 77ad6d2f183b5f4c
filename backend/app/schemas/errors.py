"""Error payload schema shared by every non-2xx API response."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Sanitized error body; internal details stay in server logs."""

    detail: str = Field(
        description="Human-readable error message.",
        examples=["Task not found"],
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier, also sent as `X-Request-Id`.",
    )
