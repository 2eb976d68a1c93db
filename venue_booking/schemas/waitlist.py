"""
Pydantic schemas for waitlist API responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from ..models.waitlist import WaitlistStatus


class WaitlistTicketResponse(BaseModel):
    """Schema for a user's place in a slot's waitlist."""

    entry_id: UUID
    slot_id: UUID
    user_id: UUID
    quantity: int
    status: WaitlistStatus
    position: Optional[int] = None
    arrived_at: datetime

    model_config = {"from_attributes": True}


class WaitlistListResponse(BaseModel):
    """Schema for waitlist list responses."""

    entries: List[WaitlistTicketResponse]
    limit: int
    offset: int


class WaitlistLeaveResponse(BaseModel):
    """Schema for leaving a waitlist."""

    slot_id: UUID
    left: bool
