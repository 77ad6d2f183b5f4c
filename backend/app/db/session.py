"""Database engine, session factory, and startup schema helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app import models as _models
from app.core.config import settings
from app.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

# Import model modules so SQLModel metadata is fully registered at startup.
_MODEL_REGISTRY = _models
NEON_HOST_MARKER = "neon.tech"


def _normalize_database_url(database_url: str) -> str:
    if "://" not in database_url:
        return database_url
    scheme, rest = database_url.split("://", 1)
    if scheme in {"postgresql", "postgres"}:
        return f"postgresql+psycopg://{rest}"
    return database_url


def _engine_options(database_url: str) -> dict[str, Any]:
    """Bound connect/checkout waits so an unreachable store fails fast."""
    if database_url.startswith("sqlite"):
        return {}
    timeout = settings.db_pool_timeout_seconds
    connect_args: dict[str, Any] = {"connect_timeout": max(1, int(timeout))}
    if NEON_HOST_MARKER in database_url and "sslmode=" not in database_url:
        connect_args["sslmode"] = "require"
    return {"pool_timeout": timeout, "connect_args": connect_args}


_database_url = _normalize_database_url(settings.database_url)
async_engine: AsyncEngine = create_async_engine(
    _database_url,
    pool_pre_ping=True,
    **_engine_options(_database_url),
)
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
logger = get_logger(__name__)


async def init_db() -> None:
    """Create any missing tables for the registered SQLModel metadata."""
    async with async_engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("db.schema.ready", extra={"tables": len(SQLModel.metadata.tables)})


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped async DB session with safe rollback on errors."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            in_txn = False
            try:
                in_txn = bool(session.in_transaction())
            except SQLAlchemyError:
                logger.exception("Failed to inspect session transaction state.")
            if in_txn:
                try:
                    await session.rollback()
                except SQLAlchemyError:
                    logger.exception("Failed to rollback session after request error.")
