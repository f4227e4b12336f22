import logging
from typing import AsyncIterator, Optional
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..core.exceptions import StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()


def normalize_url(url: str) -> str:
    """Make sure sqlite URLs use the async driver."""
    if url.startswith("sqlite://") and not url.startswith("sqlite+aiosqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def _set_sqlite_pragmas(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Engine and session factory for the metadata store.

    Built once at startup and handed to every component that needs it.
    Each session opens its own connection, so readers do not wait on the
    single writer; writers are serialized by the WriteLock.
    """

    def __init__(self, url: Optional[str] = None, busy_timeout: Optional[float] = None) -> None:
        self.url = normalize_url(url or settings.DATABASE_URL)
        timeout = busy_timeout if busy_timeout is not None else settings.SQLITE_BUSY_TIMEOUT_SECONDS
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            poolclass=NullPool,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )
        event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)
        self.session_factory = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_all(self) -> None:
        """Create the tables if they do not exist yet."""
        # Import models so they register on Base.metadata
        from . import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Session scope: commits on success, rolls back on any error.

        SQLAlchemy failures surface as StorageError.
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Metadata store failure: %s", e, exc_info=True)
            raise StorageError(str(e)) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def dispose(self) -> None:
        await self.engine.dispose()
