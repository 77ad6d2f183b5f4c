"""Public schema exports shared across API route modules."""

from app.schemas.errors import ErrorResponse
from app.schemas.health import HealthStatusResponse
from app.schemas.tasks import TaskCreate, TaskRead, TaskUpdate

__all__ = [
    "ErrorResponse",
    "HealthStatusResponse",
    "TaskCreate",
    "TaskRead",
    "TaskUpdate",
]
