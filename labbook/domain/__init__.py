"""
Pure booking engine: admission predicate and status lifecycle.
Storage, identity and clocks are supplied by the caller.
"""

from .admission import can_admit, overlaps
from .lifecycle import transition
from .roles import has_role, is_approver
from .types import (
    Actor,
    AdmissionConfig,
    AdmissionReason,
    AdmissionResult,
    BookingAction,
    BookingRecord,
    BookingStatus,
    Candidate,
    ResourceState,
    Role,
    StorageFailure,
    TransitionError,
    TransitionResult,
)

__all__ = [
    "can_admit", "overlaps", "transition", "has_role", "is_approver",
    "Actor", "AdmissionConfig", "AdmissionReason", "AdmissionResult",
    "BookingAction", "BookingRecord", "BookingStatus", "Candidate",
    "ResourceState", "Role", "StorageFailure", "TransitionError",
    "TransitionResult",
]
