# siteauth/db/session.py
from typing import AsyncGenerator

from fastapi import Request
from loguru import logger
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from siteauth.core.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Builds the engine (and its connection pool) once per process.

    The URL must name an async driver, e.g. "sqlite+aiosqlite:///./users.db"
    or "postgresql+asyncpg://...". Connection acquisition is bounded so a
    stalled store cannot hang a request.
    """
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL is not configured")

    url = make_url(settings.DATABASE_URL)
    timeout = settings.DB_OPERATION_TIMEOUT_SECONDS
    if url.get_backend_name() == "sqlite":
        # busy timeout for writers waiting on the database lock
        engine_kwargs = {"connect_args": {"timeout": timeout}}
    else:
        engine_kwargs = {"pool_timeout": timeout}

    try:
        engine = create_async_engine(
            url,
            pool_pre_ping=True,
            echo=False,
            **engine_kwargs,
        )
    except Exception as e:
        raise RuntimeError(f"Could not create async engine: {e}") from e
    logger.info(f"Database engine created for backend '{url.get_backend_name()}'")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """One session per request, taken from the factory built at startup."""
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as db:
        yield db
