"""
Booking status lifecycle and the authorization guard around it.

    pending  --approve (approver)-->            approved
    pending  --reject  (approver, reason)-->    rejected
    pending  --cancel  (requester)-->           cancelled
    approved --cancel  (requester, not started)--> cancelled

No other edges exist. Repeating a terminal action is INVALID_TRANSITION,
not a silent success.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from labbook.domain.roles import APPROVER_ROLE, has_role
from labbook.domain.types import (
    Actor,
    BookingAction,
    BookingRecord,
    BookingStatus,
    TransitionError,
    TransitionResult,
)

REASON_MAX_LENGTH = 1000

TRANSITIONS = {
    (BookingStatus.PENDING, BookingAction.APPROVE): BookingStatus.APPROVED,
    (BookingStatus.PENDING, BookingAction.REJECT): BookingStatus.REJECTED,
    (BookingStatus.PENDING, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.APPROVED, BookingAction.CANCEL): BookingStatus.CANCELLED,
}

# Actions gated by role rather than by ownership
ROLE_GATED_ACTIONS = {
    BookingAction.APPROVE: APPROVER_ROLE,
    BookingAction.REJECT: APPROVER_ROLE,
}


def allowed_actions(status: BookingStatus) -> set[BookingAction]:
    return {action for (source, action) in TRANSITIONS if source is status}


def _fail(error: TransitionError) -> TransitionResult:
    return TransitionResult(error=error)


def _is_authorized(booking: BookingRecord, action: BookingAction, actor: Actor) -> bool:
    required = ROLE_GATED_ACTIONS.get(action)
    if required is not None:
        return has_role(actor, required)
    return actor.id == booking.requester_id


def transition(
    booking: BookingRecord,
    action: BookingAction,
    actor: Actor,
    now: datetime,
    reason: Optional[str] = None,
    reason_max_length: int = REASON_MAX_LENGTH,
) -> TransitionResult:
    """
    Apply `action` to `booking` on behalf of `actor`.

    Returns a new BookingRecord on success; only status, updated_at and
    (for reject) decision_comment differ from the input.
    """
    action = BookingAction(action)

    if not _is_authorized(booking, action, actor):
        return _fail(TransitionError.FORBIDDEN)

    target = TRANSITIONS.get((booking.status, action))
    if target is None:
        return _fail(TransitionError.INVALID_TRANSITION)

    comment = booking.decision_comment
    if action is BookingAction.REJECT:
        comment = (reason or "").strip()
        if not comment:
            return _fail(TransitionError.REASON_REQUIRED)
        if len(comment) > reason_max_length:
            return _fail(TransitionError.REASON_TOO_LONG)

    if (
        action is BookingAction.CANCEL
        and booking.status is BookingStatus.APPROVED
        and booking.starts_at <= now.replace(tzinfo=None)
    ):
        return _fail(TransitionError.ALREADY_ELAPSED)

    return TransitionResult(
        booking=replace(booking, status=target, updated_at=now, decision_comment=comment)
    )
