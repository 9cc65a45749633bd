"""
Pydantic schemas for booking-related request/response validation.

Length and window rules are left to the admission engine so that every
violation comes back with its specific reason code.
"""

from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel


class BookingCreate(BaseModel):
    resource_id: int
    booking_date: date
    start_time: time
    end_time: time
    purpose: str


class BookingRejectRequest(BaseModel):
    reason: str


class BookingResponse(BaseModel):
    id: int
    resource_id: int
    requester_id: str
    booking_date: date
    start_time: time
    end_time: time
    purpose: str
    status: str
    decision_comment: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingStatsResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    cancelled: int
    upcoming: int
