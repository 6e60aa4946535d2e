"""Database configuration and session management."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("postgresql+asyncpg"):
        return {
            "server_settings": {
                "jit": "off",
                "statement_timeout": "30000",  # 30 seconds timeout
            },
            "command_timeout": 30,
        }
    return {}


# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    poolclass=NullPool,
    future=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)

# Create session factory
async_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get async database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a multi-statement write as one unit.

    Writes inside the block go through a SAVEPOINT: either all of them are
    kept or the savepoint is rolled back and no partial rows survive. The
    enclosing request transaction stays usable after a failure.
    """
    async with db.begin_nested():
        yield db
        await db.flush()


async def init_db() -> None:
    """Initialize database tables."""
    from app.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


# Alias for FastAPI dependency injection
get_db = get_async_session
