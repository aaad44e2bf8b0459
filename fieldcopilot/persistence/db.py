from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fieldcopilot.core.config import Settings, get_settings


def is_sqlite_url(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def engine_options(settings: Settings) -> dict[str, Any]:
    """Engine keyword arguments for the configured database.

    SQLite (tests, local tooling) keeps SQLAlchemy's default pool. Postgres gets a
    bounded asyncpg pool and an optional per-statement timeout so a slow evidence
    or search query cannot hold a connection indefinitely.
    """
    options: dict[str, Any] = {"pool_pre_ping": True}
    if is_sqlite_url(settings.database_url):
        return options
    options["pool_size"] = max(1, int(settings.api_db_pool_size))
    options["max_overflow"] = max(0, int(settings.api_db_max_overflow))
    options["pool_timeout"] = 30
    options["pool_recycle"] = 1800
    if settings.api_db_statement_timeout_ms > 0:
        options["connect_args"] = {
            "server_settings": {"statement_timeout": str(int(settings.api_db_statement_timeout_ms))}
        }
    return options


settings = get_settings()
engine = create_async_engine(settings.database_url, **engine_options(settings))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    # Request sessions: routes and services decide when to commit.
    async with SessionLocal() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request: commits on success, rolls back on error."""
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    # Scripts call this before their event loop closes.
    await engine.dispose()
