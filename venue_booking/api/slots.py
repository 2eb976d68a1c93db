"""
FastAPI routes for slots: reservations, capacity status and seat maps.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..schemas.booking import BookingResponse, ReservationRequest, ReservationResponse
from ..schemas.common import ERROR_RESPONSES
from ..schemas.slot import (
    SeatMapResponse,
    SeatResponse,
    SlotCreateRequest,
    SlotResponse,
    SlotStatusResponse,
)
from ..schemas.waitlist import WaitlistTicketResponse
from ..services.reservation_service import ReservationOutcome, ReservationService
from ..services.slot_service import SlotService
from ..utils.dependencies import get_current_user_id, get_reservation_service, get_slot_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/slots", tags=["slots"], responses=ERROR_RESPONSES)


@router.post("", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    slot_data: SlotCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    slot_service: SlotService = Depends(get_slot_service)
):
    """
    Create a slot for an event or movie.

    With **seat_tracking** the slot gets a labelled seat map and its capacity
    is the number of seats.
    """
    slot = await slot_service.create_slot(
        parent_type=slot_data.parent_type,
        parent_id=slot_data.parent_id,
        starts_at=slot_data.starts_at,
        ends_at=slot_data.ends_at,
        capacity=slot_data.capacity,
        seat_tracking=slot_data.seat_tracking,
        seat_rows=slot_data.seat_rows,
        seats_per_row=slot_data.seats_per_row,
    )
    logger.info(f"User {user_id} created slot {slot.id}")
    return SlotResponse.model_validate(slot)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    slot_service: SlotService = Depends(get_slot_service)
):
    """Delete a slot nobody has booked or waitlisted on."""
    await slot_service.delete_slot(slot_id)
    logger.info(f"User {user_id} deleted slot {slot_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{slot_id}/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={202: {"model": ReservationResponse, "description": "Capacity short; request waitlisted"}}
)
async def reserve(
    slot_id: UUID,
    request: ReservationRequest,
    response: Response,
    user_id: UUID = Depends(get_current_user_id),
    reservations: ReservationService = Depends(get_reservation_service)
):
    """
    Reserve units on a slot.

    - **quantity**: Number of units to reserve
    - **seats**: Optional seat labels on seat-tracked slots

    Returns 201 with the booking when confirmed, or 202 with a waitlist
    ticket when the slot lacks capacity.
    """
    result = await reservations.reserve(slot_id, user_id, request.quantity, request.seats)

    if result.status is ReservationOutcome.WAITLISTED:
        response.status_code = status.HTTP_202_ACCEPTED
        return ReservationResponse(
            status=result.status.value,
            ticket=WaitlistTicketResponse.model_validate(result.ticket)
        )

    return ReservationResponse(
        status=result.status.value,
        booking=BookingResponse.model_validate(result.booking)
    )


@router.get("/{slot_id}/status", response_model=SlotStatusResponse)
async def get_slot_status(
    slot_id: UUID,
    reservations: ReservationService = Depends(get_reservation_service)
):
    """Current capacity, booked units and availability of a slot."""
    snapshot = await reservations.get_slot_status(slot_id)
    return SlotStatusResponse.model_validate(snapshot)


@router.get("/{slot_id}/seats", response_model=SeatMapResponse)
async def get_slot_seats(
    slot_id: UUID,
    available_only: bool = Query(False, description="Only list free seats"),
    slot_service: SlotService = Depends(get_slot_service)
):
    """Seat map of a seat-tracked slot."""
    seats = await slot_service.get_slot_seats(slot_id, available_only=available_only)
    return SeatMapResponse(
        slot_id=slot_id,
        seats=[SeatResponse.model_validate(seat) for seat in seats],
        total_seats=len(seats),
        available_seats=sum(1 for seat in seats if seat.is_available),
    )
