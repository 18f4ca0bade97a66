"""Database connection and session management."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from vectorqueue.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


SQLITE_BUSY_TIMEOUT_MS = 10_000


def _apply_sqlite_pragmas(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with a pool policy suited to the dialect."""
    if not database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=10,
        )

    # One connection per session; concurrent writers wait on the WAL write lock.
    sqlite_engine = create_async_engine(
        database_url,
        echo=echo,
        poolclass=NullPool,
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT_MS / 1000.0},
    )
    event.listen(sqlite_engine.sync_engine, "connect", _apply_sqlite_pragmas)
    return sqlite_engine


def build_session_factory(target_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        target_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
engine = build_engine(settings.database_url, echo=settings.debug)

# Create async session factory
async_session_factory = build_session_factory(engine)


async def init_db(target_engine: AsyncEngine | None = None) -> None:
    """Initialize database tables."""
    # Register table metadata
    import vectorqueue.db.tables  # noqa: F401

    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
