"""
Admission predicate for new booking requests.

ADMISSION ORDER
===============

Checks run cheapest-first and stop at the first failure:

  1. resource is active                 -> RESOURCE_UNAVAILABLE
  2. start < end                        -> INVALID_WINDOW
  3. end - start <= max duration        -> DURATION_EXCEEDED
  4. today <= date <= today + advance   -> DATE_IN_PAST / TOO_FAR_IN_ADVANCE
  5. same-day slots start after now     -> SLOT_ALREADY_PASSED
  6. purpose present and bounded        -> PURPOSE_REQUIRED / PURPOSE_TOO_LONG
  7. no overlap with held slots         -> SLOT_CONFLICT

Only step 7 depends on the existing-bookings snapshot. The function is
pure: `now` and the limits are passed in, nothing is read from the
environment, so the same inputs always produce the same result.

This predicate alone does not prevent double booking. The caller must
run it inside a storage-level guarantee (see services.booking_service).
"""

from datetime import datetime, time, timedelta
from typing import Iterable

from labbook.domain.types import (
    AdmissionConfig,
    AdmissionReason,
    AdmissionResult,
    BookingRecord,
    Candidate,
)

DEFAULT_CONFIG = AdmissionConfig()


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open interval test: [start_a, end_a) intersects [start_b, end_b)."""
    return start_a < end_b and start_b < end_a


def _reject(reason: AdmissionReason, conflicting_booking_id=None) -> AdmissionResult:
    return AdmissionResult(reason=reason, conflicting_booking_id=conflicting_booking_id)


def find_conflict(candidate: Candidate, existing: Iterable[BookingRecord]):
    """Return the first slot-holding booking overlapping the candidate, if any."""
    for booking in existing:
        if not booking.holds_slot:
            continue
        if booking.resource_id != candidate.resource.id:
            continue
        if booking.booking_date != candidate.booking_date:
            continue
        if overlaps(candidate.start_time, candidate.end_time, booking.start_time, booking.end_time):
            return booking
    return None


def can_admit(
    candidate: Candidate,
    existing: Iterable[BookingRecord],
    now: datetime,
    config: AdmissionConfig = DEFAULT_CONFIG,
) -> AdmissionResult:
    """Decide whether `candidate` may enter `pending` status."""
    if not candidate.resource.active:
        return _reject(AdmissionReason.RESOURCE_UNAVAILABLE)

    if not candidate.start_time < candidate.end_time:
        return _reject(AdmissionReason.INVALID_WINDOW)

    duration = (
        datetime.combine(candidate.booking_date, candidate.end_time)
        - datetime.combine(candidate.booking_date, candidate.start_time)
    )
    if duration > timedelta(hours=config.max_duration_hours):
        return _reject(AdmissionReason.DURATION_EXCEEDED)

    today = now.date()
    if candidate.booking_date < today:
        return _reject(AdmissionReason.DATE_IN_PAST)
    if candidate.booking_date > today + timedelta(days=config.max_advance_days):
        return _reject(AdmissionReason.TOO_FAR_IN_ADVANCE)

    if candidate.booking_date == today and candidate.start_time <= now.time():
        return _reject(AdmissionReason.SLOT_ALREADY_PASSED)

    purpose = (candidate.purpose or "").strip()
    if not purpose:
        return _reject(AdmissionReason.PURPOSE_REQUIRED)
    if len(purpose) > config.purpose_max_length:
        return _reject(AdmissionReason.PURPOSE_TOO_LONG)

    conflict = find_conflict(candidate, existing)
    if conflict is not None:
        return _reject(AdmissionReason.SLOT_CONFLICT, conflicting_booking_id=conflict.id)

    return AdmissionResult(reason=AdmissionReason.ADMITTED)
