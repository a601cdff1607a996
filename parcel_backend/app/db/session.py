"""
Database engine and session wiring.

`Database` bundles one engine with its session factory. The app builds
it once in `lifespan` and keeps it on `app.state.db`; request handlers
get a session from it through the `get_db` dependency.
"""

from typing import Optional
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from parcel_backend.app.core.config import Settings

# Create declarative base for models
Base = declarative_base()


class Database:
    """An async engine plus the session factory bound to it."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_all(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()


def build_database(config: Settings, url: Optional[str] = None) -> Database:
    """
    Create the engine for the configured store.

    Pool sizing only applies to server databases; sqlite files use
    SQLAlchemy's default pool.
    """
    url = url or config.database_url
    options = {"echo": config.db_echo}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_pre_ping=True,
        )
    return Database(create_async_engine(url, **options))


async def get_db(request: Request):
    """
    FastAPI dependency for database sessions.

    Yields a session from the app's database and closes it afterwards.
    """
    async with request.app.state.db.session_factory() as session:
        yield session
