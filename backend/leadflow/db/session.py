"""
Async SQLAlchemy session factory.

`build_engine()` / `build_sessionmaker()` are used by the API process, the
Celery tasks (fresh engine per task) and the test-suite (aiosqlite).
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from leadflow.core.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str | None = None, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite URLs skip pool sizing and enable FK enforcement."""
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine(echo=(settings.APP_ENV == "development"))
async_session = build_sessionmaker(engine)
