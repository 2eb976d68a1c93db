"""
FastAPI routes for a user's bookings and cancellations.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..models.booking import BookingStatus
from ..schemas.booking import (
    BookingListResponse,
    BookingResponse,
    PromotionResponse,
    ReleaseResponse,
)
from ..schemas.common import ERROR_RESPONSES
from ..services.reservation_service import ReservationService
from ..utils.dependencies import get_current_user_id, get_reservation_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"], responses=ERROR_RESPONSES)


@router.get("", response_model=BookingListResponse)
async def get_my_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    reservations: ReservationService = Depends(get_reservation_service)
):
    """List the caller's bookings, newest first."""
    bookings = await reservations.get_user_bookings(user_id, status_filter, limit, offset)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        limit=limit,
        offset=offset,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    reservations: ReservationService = Depends(get_reservation_service)
):
    """Get one of the caller's bookings."""
    booking = await reservations.get_booking(booking_id, user_id=user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=ReleaseResponse)
async def cancel_booking(
    booking_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    reservations: ReservationService = Depends(get_reservation_service)
):
    """
    Cancel one of the caller's bookings.

    Freed capacity is offered to the slot's waitlist before this returns.
    Cancelling an already-cancelled booking frees nothing.
    """
    # Ownership check; other users' bookings look missing
    await reservations.get_booking(booking_id, user_id=user_id)

    result = await reservations.release(booking_id)
    logger.info(f"User {user_id} cancelled booking {booking_id}, freed {result.freed_quantity}")

    return ReleaseResponse(
        booking_id=result.booking_id,
        freed_quantity=result.freed_quantity,
        promoted=[
            PromotionResponse(
                entry_id=p.entry_id,
                user_id=p.user_id,
                quantity=p.quantity,
                booking_id=p.booking.id,
            )
            for p in result.promotions
        ],
    )
