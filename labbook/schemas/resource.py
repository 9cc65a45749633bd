"""
Pydantic schemas for resource-related request/response validation.
"""

from datetime import date, datetime, time
from typing import Any, Optional
from pydantic import BaseModel, Field, HttpUrl


class ResourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=200)
    department: str = Field(..., min_length=1, max_length=100)
    specifications: Optional[dict[str, Any]] = None
    image_url: Optional[HttpUrl] = None
    active: bool = True
    requires_training: bool = False


class ResourceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=200)
    department: Optional[str] = Field(None, min_length=1, max_length=100)
    specifications: Optional[dict[str, Any]] = None
    image_url: Optional[HttpUrl] = None
    active: Optional[bool] = None
    requires_training: Optional[bool] = None


class ResourceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    location: Optional[str]
    department: str
    specifications: Optional[dict[str, Any]]
    image_url: Optional[str]
    active: bool
    requires_training: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ResourceListResponse(BaseModel):
    resources: list[ResourceResponse]
    total: int
    cached: bool = False


class OccupiedSlot(BaseModel):
    booking_id: int
    start_time: time
    end_time: time
    status: str


class AvailabilityResponse(BaseModel):
    resource_id: int
    booking_date: date
    occupied: list[OccupiedSlot]
