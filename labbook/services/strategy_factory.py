"""
Submission lock factory.
Configures which serialization strategy booking submission uses.
"""

from typing import Optional

from labbook.core.config import get_settings
from labbook.services.interfaces.submission_lock import SubmissionLock
from labbook.services.interfaces.local_lock import DatabaseSubmissionLock, LocalSubmissionLock
from labbook.services.lock_service import RedisSubmissionLock

STRATEGIES = {
    "database": DatabaseSubmissionLock,
    "local": LocalSubmissionLock,
    "redis": RedisSubmissionLock,
}


def get_submission_lock_strategy(name: Optional[str] = None) -> SubmissionLock:
    """
    Build the configured submission lock.

    Selected by the SUBMISSION_LOCK setting:
    - database: row lock + exclusion constraint only (PostgreSQL)
    - local: single-process asyncio locks (development, SQLite)
    - redis: distributed lock for multi-worker deployments
    """
    name = name or get_settings().SUBMISSION_LOCK
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown SUBMISSION_LOCK strategy: {name!r}")


_lock: Optional[SubmissionLock] = None


def get_submission_lock() -> SubmissionLock:
    """Get submission lock singleton."""
    global _lock
    if _lock is None:
        _lock = get_submission_lock_strategy()
    return _lock
