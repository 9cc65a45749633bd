"""
Booking endpoints: submission, approval queue and status changes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.security import get_current_actor, require_role
from labbook.db.session import get_db
from labbook.domain.roles import APPROVER_ROLE
from labbook.domain.types import Actor, BookingAction
from labbook.schemas.booking import (
    BookingCreate,
    BookingRejectRequest,
    BookingResponse,
    BookingStatsResponse,
)
from labbook.services import booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Request a machine for a time window.

    The request is checked against the machine's pending and approved
    bookings for that date and stored as `pending` when admitted.
    Rejections carry a `code` such as SLOT_CONFLICT or DATE_IN_PAST.
    """
    return await booking_service.submit_booking(db, actor, booking_data)


@router.get("/", response_model=list[BookingResponse])
async def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings made by the caller."""
    return await booking_service.get_user_bookings(db, actor.id)


@router.get("/pending", response_model=list[BookingResponse])
async def list_pending_bookings(
    resource_id: Optional[int] = Query(None),
    actor: Actor = Depends(require_role(APPROVER_ROLE)),
    db: AsyncSession = Depends(get_db),
):
    """Approval queue for faculty and admins, oldest first."""
    return await booking_service.get_pending_bookings(db, resource_id)


@router.get("/stats", response_model=BookingStatsResponse)
async def my_booking_stats(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking_stats(db, actor.id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking(db, booking_id, actor)


@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.change_booking_status(
        db, booking_id, BookingAction.APPROVE, actor
    )


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: int,
    body: BookingRejectRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending booking. The reason is stored as the decision comment."""
    return await booking_service.change_booking_status(
        db, booking_id, BookingAction.REJECT, actor, reason=body.reason
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw your own pending booking, or an approved one that has not started."""
    return await booking_service.change_booking_status(
        db, booking_id, BookingAction.CANCEL, actor
    )
