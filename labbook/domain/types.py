"""
Value types for the booking admission engine.

Everything here is immutable and free of I/O. Rejections are modelled as
closed enums returned inside result objects, never raised.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional


class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# Statuses that still hold a time slot
NON_TERMINAL_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED})


class BookingAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


class AdmissionReason(str, Enum):
    ADMITTED = "ADMITTED"
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    INVALID_WINDOW = "INVALID_WINDOW"
    DURATION_EXCEEDED = "DURATION_EXCEEDED"
    DATE_IN_PAST = "DATE_IN_PAST"
    TOO_FAR_IN_ADVANCE = "TOO_FAR_IN_ADVANCE"
    SLOT_ALREADY_PASSED = "SLOT_ALREADY_PASSED"
    PURPOSE_REQUIRED = "PURPOSE_REQUIRED"
    PURPOSE_TOO_LONG = "PURPOSE_TOO_LONG"
    SLOT_CONFLICT = "SLOT_CONFLICT"


# Both halves of the DATE_OUT_OF_RANGE family
DATE_OUT_OF_RANGE = frozenset({AdmissionReason.DATE_IN_PAST, AdmissionReason.TOO_FAR_IN_ADVANCE})


class TransitionError(str, Enum):
    FORBIDDEN = "FORBIDDEN"
    REASON_REQUIRED = "REASON_REQUIRED"
    REASON_TOO_LONG = "REASON_TOO_LONG"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ALREADY_ELAPSED = "ALREADY_ELAPSED"


class StorageFailure(str, Enum):
    CONFLICT_AT_COMMIT = "CONFLICT_AT_COMMIT"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"


MESSAGES: dict[Enum, str] = {
    AdmissionReason.ADMITTED: "Booking request submitted",
    AdmissionReason.RESOURCE_UNAVAILABLE: "This machine is under maintenance and cannot be booked",
    AdmissionReason.INVALID_WINDOW: "End time must be after start time",
    AdmissionReason.DURATION_EXCEEDED: "Booking duration exceeds the allowed maximum",
    AdmissionReason.DATE_IN_PAST: "Cannot book for past dates",
    AdmissionReason.TOO_FAR_IN_ADVANCE: "Booking date is too far in advance",
    AdmissionReason.SLOT_ALREADY_PASSED: "This time slot has already passed",
    AdmissionReason.PURPOSE_REQUIRED: "A purpose is required",
    AdmissionReason.PURPOSE_TOO_LONG: "Purpose is too long",
    AdmissionReason.SLOT_CONFLICT: "This time slot overlaps an existing booking",
    TransitionError.FORBIDDEN: "You are not allowed to perform this action",
    TransitionError.REASON_REQUIRED: "A reason is required to reject a booking",
    TransitionError.REASON_TOO_LONG: "Rejection reason is too long",
    TransitionError.INVALID_TRANSITION: "This booking can no longer be changed this way",
    TransitionError.ALREADY_ELAPSED: "Approved bookings that have started cannot be cancelled",
    StorageFailure.CONFLICT_AT_COMMIT: "The booking changed while saving, please refresh and retry",
    StorageFailure.STORAGE_UNAVAILABLE: "Booking storage is temporarily unavailable",
}


def describe(reason: Enum) -> str:
    return MESSAGES.get(reason, reason.value)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, passed explicitly into every decision."""

    id: str
    role: Role


@dataclass(frozen=True)
class ResourceState:
    id: int
    active: bool
    # Advisory only, never enforced by the engine
    requires_training: bool = False


@dataclass(frozen=True)
class AdmissionConfig:
    max_duration_hours: int = 8
    max_advance_days: int = 30
    purpose_max_length: int = 500


@dataclass(frozen=True)
class Candidate:
    """A booking request that has not been persisted yet."""

    resource: ResourceState
    requester_id: str
    booking_date: date
    start_time: time
    end_time: time
    purpose: str


@dataclass(frozen=True)
class BookingRecord:
    id: int
    resource_id: int
    requester_id: str
    booking_date: date
    start_time: time
    end_time: time
    purpose: str
    status: BookingStatus
    decision_comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.start_time)

    @property
    def holds_slot(self) -> bool:
        return self.status in NON_TERMINAL_STATUSES


@dataclass(frozen=True)
class AdmissionResult:
    reason: AdmissionReason
    conflicting_booking_id: Optional[int] = None

    @property
    def admitted(self) -> bool:
        return self.reason is AdmissionReason.ADMITTED

    @property
    def message(self) -> str:
        return describe(self.reason)


@dataclass(frozen=True)
class TransitionResult:
    booking: Optional[BookingRecord] = None
    error: Optional[TransitionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
