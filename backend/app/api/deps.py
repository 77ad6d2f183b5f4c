"""Reusable FastAPI dependencies for the task routes.

The pipeline for every task request is: verify the bearer token, require that
the verified subject equals the `{user_id}` path segment, then hand the caller
a store bound to that owner's request session. Routes compose these instead of
re-implementing the checks.
"""

from __future__ import annotations

from fastapi import Depends

from app.core.auth import AuthContext, require_path_owner
from app.services.tasks import TaskStore, get_task_store

OWNER_DEP = Depends(require_path_owner)
TASK_STORE_DEP = Depends(get_task_store)

__all__ = [
    "OWNER_DEP",
    "TASK_STORE_DEP",
    "AuthContext",
    "TaskStore",
]
