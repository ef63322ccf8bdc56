"""Async engine and session factory, bound from configuration at startup."""

import os
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./data/uptime_monitor.db"


def _pool_options(url: str) -> Dict[str, Any]:
    if make_url(url).get_backend_name() == "sqlite":
        return {"poolclass": NullPool}
    return {
        "poolclass": AsyncAdaptedQueuePool,
        "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for ``url``.

    SQLite opens connections on demand; server databases get a pre-pinged
    queue pool sized by ``DB_POOL_SIZE`` / ``DB_MAX_OVERFLOW``.
    """
    return create_async_engine(url, echo=echo, **_pool_options(url))


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    if parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


engine = build_engine(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def configure_database(url: str, echo: bool = False) -> AsyncEngine:
    """
    Rebind the session factory to the configured database.

    Every holder of ``async_session`` picks up the new engine. The previous
    engine is disposed when it is replaced.

    Returns:
        AsyncEngine: The engine now in use
    """
    global engine

    ensure_sqlite_directory(url)

    current_url = engine.url.render_as_string(hide_password=False)
    if current_url == url and engine.echo == echo:
        return engine

    previous, engine = engine, build_engine(url, echo=echo)
    async_session.configure(bind=engine)
    await previous.dispose()
    return engine


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Commits on success, rolls back and re-raises on error.

    Yields:
        AsyncSession: Database session
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
