from labbook.schemas.resource import (
    ResourceCreate, ResourceUpdate, ResourceResponse, ResourceListResponse, AvailabilityResponse,
)
from labbook.schemas.booking import (
    BookingCreate, BookingResponse, BookingRejectRequest, BookingStatsResponse,
)

__all__ = [
    "ResourceCreate", "ResourceUpdate", "ResourceResponse", "ResourceListResponse",
    "AvailabilityResponse",
    "BookingCreate", "BookingResponse", "BookingRejectRequest", "BookingStatsResponse",
]
