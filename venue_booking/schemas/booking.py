"""
Pydantic schemas for reservation and booking API requests and responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..models.booking import BookingStatus
from .waitlist import WaitlistTicketResponse


class ReservationRequest(BaseModel):
    """Schema for reserving units on a slot."""

    quantity: int = Field(..., ge=1, description="Number of units to reserve")
    seats: Optional[List[str]] = Field(None, description="Optional seat labels, e.g. ['A1', 'A2']")

    @field_validator('seats')
    @classmethod
    def validate_seats(cls, v, info):
        """Validate that seats length matches quantity if provided."""
        if v is not None and info.data and 'quantity' in info.data:
            if len(v) != info.data['quantity']:
                raise ValueError("Number of seats must match quantity")
            if len(set(v)) != len(v):
                raise ValueError("Seat labels must be unique")
        return v


class BookingResponse(BaseModel):
    """Schema for booking responses."""

    id: UUID
    user_id: UUID
    slot_id: UUID
    quantity: int
    seats: List[str] = []
    status: BookingStatus
    waitlist_entry_id: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReservationResponse(BaseModel):
    """Outcome of a reservation: a confirmed booking or a waitlist ticket."""

    status: str = Field(..., description="CONFIRMED or WAITLISTED")
    booking: Optional[BookingResponse] = None
    ticket: Optional[WaitlistTicketResponse] = None


class PromotionResponse(BaseModel):
    """Schema for a waitlist promotion triggered by a release."""

    entry_id: UUID
    user_id: UUID
    quantity: int
    booking_id: UUID


class ReleaseResponse(BaseModel):
    """Schema for booking cancellation responses."""

    booking_id: UUID
    freed_quantity: int
    promoted: List[PromotionResponse] = []


class BookingListResponse(BaseModel):
    """Schema for booking list responses."""

    bookings: List[BookingResponse]
    limit: int
    offset: int
