"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .submission_lock import SubmissionLock
from .local_lock import DatabaseSubmissionLock, LocalSubmissionLock

__all__ = ['SubmissionLock', 'DatabaseSubmissionLock', 'LocalSubmissionLock']
