"""
Submission lock strategy interface.

A submission lock serializes writers for one (resource, date) pair
between the snapshot read and the insert. It narrows the check-then-act
window; the database row lock and exclusion constraint still decide.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator


class SubmissionLock(ABC):
    """
    Interface for per-resource submission serialization.

    Implementations:
    - DatabaseSubmissionLock: no extra lock, rely on SELECT ... FOR UPDATE
    - LocalSubmissionLock: asyncio.Lock per key, one worker process
    - RedisSubmissionLock: SET NX token lock shared by all workers
    """

    @staticmethod
    def key(resource_id: int, booking_date: date) -> str:
        return f"submit:{resource_id}:{booking_date.isoformat()}"

    @abstractmethod
    async def acquire(self, resource_id: int, booking_date: date) -> object:
        """
        Block until this caller is the single writer for the key.

        Returns:
            An opaque token to hand back to release()
        """

    @abstractmethod
    async def release(self, resource_id: int, booking_date: date, token: object) -> None:
        """Give up the lock taken by acquire()."""

    @asynccontextmanager
    async def hold(self, resource_id: int, booking_date: date) -> AsyncIterator[None]:
        token = await self.acquire(resource_id, booking_date)
        try:
            yield
        finally:
            await self.release(resource_id, booking_date, token)
