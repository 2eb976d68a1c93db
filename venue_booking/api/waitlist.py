"""
Waitlist API endpoints for a user's waitlist entries.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..models.waitlist import WaitlistStatus
from ..schemas.common import ERROR_RESPONSES
from ..schemas.waitlist import WaitlistLeaveResponse, WaitlistListResponse, WaitlistTicketResponse
from ..services.reservation_service import ReservationService
from ..utils.dependencies import get_current_user_id, get_reservation_service
from ..utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/waitlist", tags=["waitlist"], responses=ERROR_RESPONSES)


@router.get("", response_model=WaitlistListResponse)
async def get_my_waitlist(
    status_filter: Optional[WaitlistStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    reservations: ReservationService = Depends(get_reservation_service)
):
    """List the caller's waitlist entries with queue positions."""
    tickets = await reservations.waitlist.get_user_entries(user_id, status_filter, limit, offset)
    return WaitlistListResponse(
        entries=[WaitlistTicketResponse.model_validate(t) for t in tickets],
        limit=limit,
        offset=offset,
    )


@router.get("/{slot_id}", response_model=WaitlistTicketResponse)
async def get_my_position(
    slot_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    reservations: ReservationService = Depends(get_reservation_service)
):
    """The caller's pending entry on a slot, with its position."""
    ticket = await reservations.waitlist.get_ticket(slot_id, user_id)
    if ticket is None:
        raise NotFoundError(
            f"No pending waitlist entry on slot {slot_id}",
            resource_type="waitlist_entry",
            resource_id=str(slot_id)
        )
    return WaitlistTicketResponse.model_validate(ticket)


@router.delete("/{slot_id}", response_model=WaitlistLeaveResponse)
async def leave_waitlist(
    slot_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    reservations: ReservationService = Depends(get_reservation_service)
):
    """Withdraw the caller's pending entry on a slot."""
    left = await reservations.waitlist.leave(slot_id, user_id)
    if not left:
        raise NotFoundError(
            f"No pending waitlist entry on slot {slot_id}",
            resource_type="waitlist_entry",
            resource_id=str(slot_id)
        )

    logger.info(f"User {user_id} left waitlist for slot {slot_id}")
    return WaitlistLeaveResponse(slot_id=slot_id, left=True)
