"""
Booking service: admission under a storage-level guarantee, and status
transitions through a guarded update.

CONCURRENCY STRATEGY
====================

Problem:
  Two students submit overlapping requests for the same machine at the
  same moment. Both read an empty snapshot, both pass the admission
  check, both insert. Result: a double-booked slot.

Solution (all inside the request's transaction):

  1. SELECT the resource row FOR UPDATE. Concurrent submitters for the
     same machine queue behind each other on PostgreSQL.
  2. Hold the configured SubmissionLock for (resource, date). This covers
     backends without row locks (SQLite) and spreads the queue across
     workers when Redis is used.
  3. Read the pending/approved snapshot and run the pure admission check.
  4. INSERT as `pending`, flush, and query again for overlaps other than
     the new row. A hit means someone slipped past steps 1-2.
  5. The exclusion constraint (see migration 001) is the final safety
     net: an overlapping insert raises IntegrityError at flush.
  6. COMMIT before the submission lock is released, so the next writer
     queued on the lock sees this row in its snapshot and gets
     SLOT_CONFLICT rather than a late CONFLICT_AT_COMMIT.

  Any conflict detected at steps 4-5 rolls back and is reported as
  CONFLICT_AT_COMMIT. Nothing is retried here: a retry needs a fresh
  snapshot, so it belongs to the caller.

Status changes:
  UPDATE bookings SET status = :new WHERE id = :id AND status = :old
  If rows_affected == 0 another request moved the booking first ->
  CONFLICT_AT_COMMIT. Same optimistic pattern, keyed on status instead of
  a version column.
"""

from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.config import get_settings, lab_now
from labbook.core.logging import get_logger
from labbook.core.metrics import (
    admission_latency,
    commit_conflicts,
    record_admission,
    record_transition,
    storage_errors,
)
from labbook.domain.admission import can_admit
from labbook.domain.lifecycle import transition
from labbook.domain.roles import is_approver
from labbook.domain.types import (
    NON_TERMINAL_STATUSES,
    Actor,
    BookingAction,
    BookingStatus,
    Candidate,
    StorageFailure,
)
from labbook.models.booking import Booking
from labbook.models.resource import Resource
from labbook.schemas.booking import BookingCreate
from labbook.services.errors import not_found, rejection
from labbook.services.interfaces.submission_lock import SubmissionLock
from labbook.services.strategy_factory import get_submission_lock

logger = get_logger(__name__)

HELD_STATUSES = [s.value for s in NON_TERMINAL_STATUSES]


async def _fetch_snapshot(db: AsyncSession, resource_id: int, booking_date: date) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.resource_id == resource_id,
            Booking.booking_date == booking_date,
            Booking.status.in_(HELD_STATUSES),
        )
        .order_by(Booking.start_time.asc(), Booking.id.asc())
    )
    return list(result.scalars().all())


async def _find_overlap(db: AsyncSession, booking: Booking) -> Optional[Booking]:
    """Another slot-holding booking overlapping `booking`, if one exists."""
    result = await db.execute(
        select(Booking)
        .where(
            Booking.id != booking.id,
            Booking.resource_id == booking.resource_id,
            Booking.booking_date == booking.booking_date,
            Booking.status.in_(HELD_STATUSES),
            Booking.start_time < booking.end_time,
            Booking.end_time > booking.start_time,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _storage_failure(db: AsyncSession, error: SQLAlchemyError, **context) -> HTTPException:
    await db.rollback()
    if isinstance(error, IntegrityError):
        commit_conflicts.inc()
        logger.warning("booking_commit_conflict", error=str(error.orig), **context)
        return rejection(StorageFailure.CONFLICT_AT_COMMIT)
    storage_errors.inc()
    logger.error("booking_storage_unavailable", error=str(error), **context)
    return rejection(StorageFailure.STORAGE_UNAVAILABLE)


async def submit_booking(
    db: AsyncSession,
    actor: Actor,
    booking_data: BookingCreate,
    now: Optional[datetime] = None,
    lock: Optional[SubmissionLock] = None,
) -> Booking:
    """
    Admit and persist a new booking request as `pending`.
    Commits the caller's transaction while the submission lock is held.
    Raises 404 for an unknown resource and the reason-specific error otherwise.
    """
    now = now or lab_now()
    if lock is None:
        lock = get_submission_lock()
    try:
        return await _submit(db, actor, booking_data, now, lock)
    except SQLAlchemyError as e:
        raise await _storage_failure(
            db, e, resource_id=booking_data.resource_id, requester_id=actor.id
        )


async def _submit(
    db: AsyncSession,
    actor: Actor,
    booking_data: BookingCreate,
    now: datetime,
    lock: SubmissionLock,
) -> Booking:
    settings = get_settings()
    resource_id = booking_data.resource_id

    result = await db.execute(
        select(Resource).where(Resource.id == resource_id).with_for_update()
    )
    resource = result.scalar_one_or_none()
    if not resource:
        raise not_found("Resource", resource_id)

    candidate = Candidate(
        resource=resource.to_state(),
        requester_id=actor.id,
        booking_date=booking_data.booking_date,
        start_time=booking_data.start_time,
        end_time=booking_data.end_time,
        purpose=booking_data.purpose,
    )

    async with lock.hold(resource_id, candidate.booking_date):
        with admission_latency.time():
            snapshot = await _fetch_snapshot(db, resource_id, candidate.booking_date)
            decision = can_admit(
                candidate,
                [b.to_record() for b in snapshot],
                now,
                settings.admission_config,
            )
        record_admission(decision.reason.value)

        if not decision.admitted:
            logger.info(
                "booking_admission_rejected",
                reason=decision.reason.value,
                resource_id=resource_id,
                requester_id=actor.id,
                booking_date=str(candidate.booking_date),
                conflicting_booking_id=decision.conflicting_booking_id,
            )
            extra = {}
            if decision.conflicting_booking_id is not None:
                extra["conflicting_booking_id"] = decision.conflicting_booking_id
            raise rejection(decision.reason, **extra)

        booking = Booking(
            resource_id=resource_id,
            requester_id=actor.id,
            booking_date=candidate.booking_date,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            purpose=candidate.purpose.strip(),
            status=BookingStatus.PENDING.value,
        )
        db.add(booking)
        await db.flush()

        clash = await _find_overlap(db, booking)
        if clash is not None:
            clash_id = clash.id
            await db.rollback()
            commit_conflicts.inc()
            logger.warning(
                "booking_commit_conflict",
                resource_id=resource_id,
                requester_id=actor.id,
                conflicting_booking_id=clash_id,
            )
            raise rejection(StorageFailure.CONFLICT_AT_COMMIT, conflicting_booking_id=clash_id)

        await db.commit()

    await db.refresh(booking)
    logger.info(
        "booking_submitted",
        booking_id=booking.id,
        resource_id=resource_id,
        requester_id=actor.id,
        booking_date=str(booking.booking_date),
        start_time=str(booking.start_time),
        end_time=str(booking.end_time),
    )
    return booking


async def change_booking_status(
    db: AsyncSession,
    booking_id: int,
    action: BookingAction,
    actor: Actor,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Approve, reject or cancel a booking on behalf of `actor`."""
    now = now or lab_now()
    try:
        return await _change_status(db, booking_id, BookingAction(action), actor, reason, now)
    except SQLAlchemyError as e:
        raise await _storage_failure(db, e, booking_id=booking_id, action=str(action))


async def _change_status(
    db: AsyncSession,
    booking_id: int,
    action: BookingAction,
    actor: Actor,
    reason: Optional[str],
    now: datetime,
) -> Booking:
    settings = get_settings()

    result = await db.execute(select(Booking).where(Booking.id == booking_id).with_for_update())
    booking = result.scalar_one_or_none()
    if not booking:
        raise not_found("Booking", booking_id)

    current = booking.to_record()
    outcome = transition(
        current, action, actor, now, reason=reason, reason_max_length=settings.REASON_MAX_LENGTH
    )
    record_transition(action.value, "ok" if outcome.ok else outcome.error.value)

    if not outcome.ok:
        logger.info(
            "booking_transition_rejected",
            booking_id=booking_id,
            action=action.value,
            actor_id=actor.id,
            status=current.status.value,
            error=outcome.error.value,
        )
        raise rejection(outcome.error)

    updated = outcome.booking
    update_result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == current.status.value)
        .values(
            status=updated.status.value,
            decision_comment=updated.decision_comment,
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )

    if update_result.rowcount == 0:
        await db.rollback()
        commit_conflicts.inc()
        logger.warning("booking_transition_conflict", booking_id=booking_id, action=action.value)
        raise rejection(StorageFailure.CONFLICT_AT_COMMIT)

    await db.refresh(booking)
    logger.info(
        "booking_transitioned",
        booking_id=booking_id,
        action=action.value,
        actor_id=actor.id,
        from_status=current.status.value,
        to_status=updated.status.value,
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: int, actor: Actor) -> Booking:
    """A booking is visible to its requester and to approvers."""
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()

    if not booking:
        raise not_found("Booking", booking_id)
    if booking.requester_id != actor.id and not is_approver(actor):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "FORBIDDEN", "message": "Not your booking"},
        )
    return booking


async def get_user_bookings(db: AsyncSession, requester_id: str) -> list[Booking]:
    """Get all bookings for a requester, soonest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.requester_id == requester_id)
        .order_by(Booking.booking_date.asc(), Booking.start_time.asc())
    )
    return list(result.scalars().all())


async def get_pending_bookings(
    db: AsyncSession, resource_id: Optional[int] = None
) -> list[Booking]:
    """Approval queue, oldest request first."""
    query = select(Booking).where(Booking.status == BookingStatus.PENDING.value)
    if resource_id is not None:
        query = query.where(Booking.resource_id == resource_id)
    result = await db.execute(query.order_by(Booking.created_at.asc(), Booking.id.asc()))
    return list(result.scalars().all())


async def get_booking_stats(
    db: AsyncSession, requester_id: str, now: Optional[datetime] = None
) -> dict:
    """Per-status counts for a requester plus slot-holding bookings still ahead."""
    now = now or lab_now()

    rows = await db.execute(
        select(Booking.status, func.count())
        .where(Booking.requester_id == requester_id)
        .group_by(Booking.status)
    )
    counts = {s.value: 0 for s in BookingStatus}
    counts.update({row_status: count for row_status, count in rows.all()})

    upcoming = (
        await db.execute(
            select(func.count())
            .select_from(Booking)
            .where(
                Booking.requester_id == requester_id,
                Booking.status.in_(HELD_STATUSES),
                or_(
                    Booking.booking_date > now.date(),
                    and_(Booking.booking_date == now.date(), Booking.start_time > now.time()),
                ),
            )
        )
    ).scalar()

    return {"total": sum(counts.values()), **counts, "upcoming": upcoming}
