"""
Resource endpoints with Redis caching on list operations.
Writes commit before invalidating, so a concurrent list cannot re-cache
rows that are about to change.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.security import get_current_actor, require_role
from labbook.db.session import get_db
from labbook.domain.roles import has_role
from labbook.domain.types import Actor, Role
from labbook.schemas.resource import (
    AvailabilityResponse,
    OccupiedSlot,
    ResourceCreate,
    ResourceListResponse,
    ResourceResponse,
    ResourceUpdate,
)
from labbook.services import resource_service
from labbook.services.cache_service import (
    get_cached_resources,
    invalidate_resource_cache,
    set_cached_resources,
)
from labbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/resources", tags=["Resources"])


@router.post("/", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
async def create_resource_endpoint(
    resource_data: ResourceCreate,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Add a machine to the catalogue. Admin only."""
    resource = await resource_service.create_resource(db, resource_data)
    await db.commit()
    await invalidate_resource_cache()
    return resource


@router.get("/", response_model=ResourceListResponse)
async def list_resources_endpoint(
    department: Optional[str] = Query(None, max_length=100),
    location: Optional[str] = Query(None, max_length=200),
    include_inactive: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    List machines ordered by name.
    Machines under maintenance are only listed for admins who ask for them.
    """
    include_inactive = include_inactive and has_role(actor, Role.ADMIN)

    cached = await get_cached_resources(department, location, include_inactive)
    if cached:
        logger.info("resources_list_cache_hit", department=department, location=location)
        cached["cached"] = True
        return ResourceListResponse(**cached)

    resources = await resource_service.list_resources(db, department, location, include_inactive)
    response_data = {
        "resources": [ResourceResponse.model_validate(r).model_dump() for r in resources],
        "total": len(resources),
        "cached": False,
    }
    await set_cached_resources(department, location, include_inactive, response_data)
    return ResourceListResponse(**response_data)


@router.get("/{resource_id}", response_model=ResourceResponse)
async def get_resource_endpoint(
    resource_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await resource_service.get_resource(db, resource_id)


@router.patch("/{resource_id}", response_model=ResourceResponse)
async def update_resource_endpoint(
    resource_id: int,
    resource_update: ResourceUpdate,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Edit a machine, or set `active` to false for maintenance. Admin only."""
    resource = await resource_service.update_resource(db, resource_id, resource_update)
    await db.commit()
    await invalidate_resource_cache()
    return resource


@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_resource_endpoint(
    resource_id: int,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a machine that has never been booked. Admin only."""
    await resource_service.delete_resource(db, resource_id)
    await db.commit()
    await invalidate_resource_cache()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{resource_id}/availability", response_model=AvailabilityResponse)
async def get_availability_endpoint(
    resource_id: int,
    booking_date: date = Query(..., alias="date"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Occupied [start, end) windows for a machine on a date. Not cached."""
    bookings = await resource_service.get_occupied_slots(db, resource_id, booking_date)
    return AvailabilityResponse(
        resource_id=resource_id,
        booking_date=booking_date,
        occupied=[
            OccupiedSlot(
                booking_id=b.id, start_time=b.start_time, end_time=b.end_time, status=b.status
            )
            for b in bookings
        ],
    )
