"""
Pydantic schemas for slot API requests and responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..models.seat import SeatStatus
from ..models.slot import ParentType, SlotStatus


class SlotCreateRequest(BaseModel):
    """Schema for creating a slot."""

    parent_type: ParentType
    parent_id: UUID
    starts_at: datetime
    ends_at: datetime
    capacity: Optional[int] = Field(None, ge=1, description="Units on sale; derived from the seat map when seats are tracked")
    seat_tracking: bool = False
    seat_rows: Optional[int] = Field(None, ge=1, le=52)
    seats_per_row: Optional[int] = Field(None, ge=1, le=100)

    @model_validator(mode="after")
    def validate_times(self):
        """Validate slot timing and capacity source."""
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        if not self.seat_tracking and self.capacity is None:
            raise ValueError("capacity is required unless seats are tracked")
        return self


class SlotResponse(BaseModel):
    """Schema for slot responses."""

    id: UUID
    parent_type: ParentType
    parent_id: UUID
    starts_at: datetime
    ends_at: datetime
    capacity: int
    booked: int
    available: int
    status: SlotStatus
    seat_tracking: bool

    model_config = {"from_attributes": True}


class SlotStatusResponse(BaseModel):
    """Schema for a slot's capacity snapshot."""

    slot_id: UUID
    capacity: int
    booked: int
    available: int
    status: SlotStatus

    model_config = {"from_attributes": True}


class SeatResponse(BaseModel):
    """Schema for a seat in a slot's seat map."""

    label: str
    row: str
    number: int
    status: SeatStatus

    model_config = {"from_attributes": True}


class SeatMapResponse(BaseModel):
    """Schema for a slot's seat map."""

    slot_id: UUID
    seats: List[SeatResponse]
    total_seats: int
    available_seats: int
