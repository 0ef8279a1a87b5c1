"""
db/session.py
-------------
Async SQLAlchemy engine and session factory, owned by a Database object.

Design decisions:
  - One Database per process, built in the app lifespan and handed to the
    repositories (no module-level engine).
  - aiosqlite for SQLite URLs, asyncpg for PostgreSQL URLs.
  - Driver-level query timeout from settings.DB_QUERY_TIMEOUT so a stuck
    statement cannot hold a request forever.
  - expire_on_commit=False: entities stay readable after the session that
    loaded them has closed.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chat_api.core.config import settings


def _engine_options(url: str, query_timeout: float) -> dict:
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return {"connect_args": {"timeout": query_timeout}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_timeout": query_timeout,
        "connect_args": {"command_timeout": query_timeout},
    }


class Database:

    def __init__(
        self,
        url: Optional[str] = None,
        query_timeout: Optional[float] = None,
        echo: Optional[bool] = None,
    ) -> None:
        self.url = url or settings.DATABASE_URL
        timeout = query_timeout if query_timeout is not None else settings.DB_QUERY_TIMEOUT
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=settings.DEBUG if echo is None else echo,
            **_engine_options(self.url, timeout),
        )
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session that commits on success and rolls back on error.

        Usage:
            async with database.session() as session:
                session.add(obj)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def dispose(self) -> None:
        await self.engine.dispose()
