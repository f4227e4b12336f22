"""
Process-wide gate for metadata-mutating transactions.

SQLite rejects concurrent write transactions coming from different
connections ("database is locked"), so every mutation issued while requests
are served concurrently runs inside this lock.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WriteLock:
    """Mutual exclusion for write transactions.

    Usage::

        async with write_lock:
            await tokens_crud.consume_token(db, token)

        await write_lock.run(tokens_crud.create_token, db, path=...)

    Acquisition waits until the current holder releases; the lock is released
    on every exit path, including exceptions and cancellation.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "WriteLock":
        await self._lock.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await ``fn(*args, **kwargs)`` while holding the lock."""
        async with self:
            return await fn(*args, **kwargs)
