"""
In-process submission locks.
"""

import asyncio
from datetime import date

from labbook.services.interfaces.submission_lock import SubmissionLock


class DatabaseSubmissionLock(SubmissionLock):
    """
    No application-level lock.
    Relies on the resource row lock and the exclusion constraint.

    Use when:
    - Running on PostgreSQL
    - Contention per machine is low
    """

    async def acquire(self, resource_id: int, booking_date: date) -> object:
        return None

    async def release(self, resource_id: int, booking_date: date, token: object) -> None:
        pass


class LocalSubmissionLock(SubmissionLock):
    """
    One asyncio.Lock per (resource, date) inside this process.

    Use when:
    - A single worker serves all traffic (development, SQLite)
    - The database cannot lock rows

    Idle keys are dropped on release, so the map only holds contended keys.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        # Holders plus waiters per key; the entry is dropped at zero
        self._users: dict[str, int] = {}

    def active_keys(self) -> int:
        """Keys currently held or waited on."""
        return len(self._locks)

    async def acquire(self, resource_id: int, booking_date: date) -> object:
        key = self.key(resource_id, booking_date)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(key)
            raise
        return key

    async def release(self, resource_id: int, booking_date: date, token: object) -> None:
        self._locks[token].release()
        self._forget(token)

    def _forget(self, key: str) -> None:
        self._users[key] -= 1
        if not self._users[key]:
            del self._users[key]
            del self._locks[key]
