# ruff: noqa: INP001
"""Shared builders for task API tests: in-memory DB, verifier, and test app."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.tasks import router as tasks_router
from app.core.error_handling import install_error_handling
from app.core.tokens import TokenVerifier
from app.db.session import get_session

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

TEST_SECRET = "unit-test-secret-0123456789-0123456789-xyz"


async def make_engine(url: str = "sqlite+aiosqlite:///:memory:") -> AsyncEngine:
    if url.endswith(":memory:"):
        engine = create_async_engine(url, poolclass=StaticPool)
    else:
        engine = create_async_engine(url)
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def make_verifier() -> TokenVerifier:
    return TokenVerifier(secret=TEST_SECRET)


def bearer(verifier: TokenVerifier, subject: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {verifier.issue(subject)}"}


def build_test_app(
    session_maker: async_sessionmaker[AsyncSession],
    verifier: TokenVerifier,
) -> FastAPI:
    app = FastAPI()
    app.state.token_verifier = verifier
    install_error_handling(app)
    api = APIRouter(prefix="/api")
    api.include_router(tasks_router)
    app.include_router(api)

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    return app
