"""
Resource service handling the machine catalogue.
"""

from datetime import date
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.logging import get_logger
from labbook.domain.types import NON_TERMINAL_STATUSES
from labbook.models.booking import Booking
from labbook.models.resource import Resource
from labbook.schemas.resource import ResourceCreate, ResourceUpdate
from labbook.services.errors import not_found

logger = get_logger(__name__)


async def create_resource(db: AsyncSession, resource_data: ResourceCreate) -> Resource:
    resource = Resource(**resource_data.model_dump(mode="json"))
    db.add(resource)
    await db.flush()
    await db.refresh(resource)

    logger.info("resource_created", resource_id=resource.id, name=resource.name)
    return resource


async def get_resource(db: AsyncSession, resource_id: int) -> Resource:
    """Get a single resource by ID."""
    result = await db.execute(select(Resource).where(Resource.id == resource_id))
    resource = result.scalar_one_or_none()

    if not resource:
        raise not_found("Resource", resource_id)
    return resource


async def update_resource(
    db: AsyncSession, resource_id: int, resource_update: ResourceUpdate
) -> Resource:
    """
    Partially update a resource.
    Setting `active` to false puts the machine under maintenance; bookings
    already held are left as they are.
    """
    resource = await get_resource(db, resource_id)

    changes = resource_update.model_dump(mode="json", exclude_unset=True)
    for key, value in changes.items():
        setattr(resource, key, value)
    await db.flush()
    await db.refresh(resource)

    logger.info("resource_updated", resource_id=resource.id, fields=sorted(changes))
    return resource


async def delete_resource(db: AsyncSession, resource_id: int) -> None:
    """Delete a resource that no booking has ever referenced."""
    resource = await get_resource(db, resource_id)

    references = (
        await db.execute(
            select(func.count()).select_from(Booking).where(Booking.resource_id == resource_id)
        )
    ).scalar()
    if references:
        logger.warning("resource_delete_refused", resource_id=resource_id, bookings=references)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "RESOURCE_IN_USE",
                "message": "Machines with bookings cannot be deleted; deactivate it instead",
            },
        )

    await db.delete(resource)
    await db.flush()
    logger.info("resource_deleted", resource_id=resource_id)


async def list_resources(
    db: AsyncSession,
    department: Optional[str] = None,
    location: Optional[str] = None,
    include_inactive: bool = False,
) -> list[Resource]:
    """List resources ordered by name. Inactive ones only when asked for."""
    query = select(Resource)

    if not include_inactive:
        query = query.where(Resource.active.is_(True))
    if department:
        query = query.where(Resource.department == department)
    if location:
        query = query.where(Resource.location == location)

    result = await db.execute(query.order_by(Resource.name.asc(), Resource.id.asc()))
    return list(result.scalars().all())


async def get_occupied_slots(
    db: AsyncSession, resource_id: int, booking_date: date
) -> list[Booking]:
    """Slot-holding bookings for a resource on a date, ordered by start."""
    await get_resource(db, resource_id)
    result = await db.execute(
        select(Booking)
        .where(
            Booking.resource_id == resource_id,
            Booking.booking_date == booking_date,
            Booking.status.in_([s.value for s in NON_TERMINAL_STATUSES]),
        )
        .order_by(Booking.start_time.asc())
    )
    return list(result.scalars().all())
