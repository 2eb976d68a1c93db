"""
Slot service for creating, inspecting and deleting bookable slots.
"""

import logging
import string
from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..models import Booking, ParentType, Seat, SeatStatus, Slot, SlotStatus, WaitlistEntry
from ..utils.exceptions import (
    OptimisticLockError,
    SlotHasBookingsError,
    SlotNotFoundError,
    ValidationError,
)
from ..utils.retry import retry_on_concurrency_error

logger = logging.getLogger(__name__)


def row_label(index: int) -> str:
    """Spreadsheet-style row label: 0 -> A, 25 -> Z, 26 -> AA."""
    label = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        label = string.ascii_uppercase[remainder] + label
    return label


class SlotService:
    """Service class for slot management operations."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.settings = get_settings()

    async def create_slot(
        self,
        parent_type: ParentType,
        parent_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        capacity: Optional[int] = None,
        seat_tracking: bool = False,
        seat_rows: Optional[int] = None,
        seats_per_row: Optional[int] = None
    ) -> Slot:
        """
        Create a slot, with its seat map when seats are tracked.

        A seat-tracked slot's capacity is the size of its seat map. Rows and
        seats per row default to the configured venue layout.

        Args:
            parent_type: Kind of listing the slot belongs to
            parent_id: ID of the event or movie
            starts_at: Slot start time
            ends_at: Slot end time
            capacity: Units on sale; required unless seats are tracked
            seat_tracking: Whether to create labelled seats
            seat_rows: Number of seat rows
            seats_per_row: Seats in each row

        Returns:
            Created slot instance

        Raises:
            ValidationError: If slot data is invalid
        """
        if ends_at <= starts_at:
            raise ValidationError(
                "Slot must end after it starts",
                field_errors={"ends_at": ["Must be after starts_at"]}
            )

        seats: List[Seat] = []
        if seat_tracking:
            rows = seat_rows or self.settings.default_seat_rows
            per_row = seats_per_row or self.settings.default_seats_per_row
            if rows <= 0 or per_row <= 0:
                raise ValidationError("Seat map dimensions must be positive")

            if capacity is not None and capacity != rows * per_row:
                raise ValidationError(
                    "Capacity must equal the number of seats",
                    field_errors={"capacity": [f"Seat map holds {rows * per_row} seats"]}
                )
            capacity = rows * per_row

            for r in range(rows):
                row = row_label(r)
                for number in range(1, per_row + 1):
                    seats.append(Seat(
                        label=f"{row}{number}",
                        row=row,
                        number=number,
                        status=SeatStatus.AVAILABLE
                    ))

        if capacity is None or capacity <= 0:
            raise ValidationError(
                "Capacity must be a positive integer",
                field_errors={"capacity": ["Must be greater than 0"]}
            )

        slot = Slot(
            id=uuid4(),
            parent_type=parent_type,
            parent_id=parent_id,
            starts_at=starts_at,
            ends_at=ends_at,
            capacity=capacity,
            seat_tracking=seat_tracking
        )

        async with self.session_factory.begin() as session:
            session.add(slot)
            await session.flush()
            for seat in seats:
                seat.slot_id = slot.id
            session.add_all(seats)

        logger.info(
            f"Created slot {slot.id} for {parent_type.value} {parent_id} "
            f"with capacity {capacity}{' (seat map)' if seat_tracking else ''}"
        )
        return slot

    async def get_slot(self, slot_id: UUID) -> Slot:
        """
        Get slot by ID.

        Raises:
            SlotNotFoundError: If slot is not found
        """
        async with self.session_factory() as session:
            slot = await session.get(Slot, slot_id)
            if slot is None:
                raise SlotNotFoundError(str(slot_id))
            return slot

    async def list_parent_slots(
        self,
        parent_type: ParentType,
        parent_id: UUID,
        available_only: bool = False
    ) -> List[Slot]:
        """Slots of one event or movie ordered by start time."""
        async with self.session_factory() as session:
            query = (
                select(Slot)
                .where(Slot.parent_type == parent_type, Slot.parent_id == parent_id)
                .order_by(Slot.starts_at)
            )
            slots = list((await session.execute(query)).scalars().all())

        if available_only:
            slots = [slot for slot in slots if slot.status == SlotStatus.AVAILABLE]
        return slots

    async def get_slot_seats(self, slot_id: UUID, available_only: bool = False) -> List[Seat]:
        """
        Seat map of a slot in row, then number, order.

        Raises:
            SlotNotFoundError: If slot is not found
            ValidationError: If the slot does not track seats
        """
        async with self.session_factory() as session:
            slot = await session.get(Slot, slot_id)
            if slot is None:
                raise SlotNotFoundError(str(slot_id))
            if not slot.seat_tracking:
                raise ValidationError(f"Slot {slot_id} does not track individual seats")

            query = select(Seat).where(Seat.slot_id == slot_id)
            if available_only:
                query = query.where(Seat.status == SeatStatus.AVAILABLE)
            query = query.order_by(func.length(Seat.row), Seat.row, Seat.number)

            return list((await session.execute(query)).scalars().all())

    async def delete_slot(self, slot_id: UUID) -> None:
        """
        Delete a slot and its seat map.

        Raises:
            SlotNotFoundError: If slot is not found
            SlotHasBookingsError: If any booking or waitlist entry references the slot
            BusyError: If contention outlasts the retry budget
        """
        await self._delete_attempt(slot_id)
        logger.info(f"Deleted slot {slot_id}")

    @retry_on_concurrency_error("delete_slot")
    async def _delete_attempt(self, slot_id: UUID) -> None:
        async with self.session_factory.begin() as session:
            slot = await session.get(Slot, slot_id)
            if slot is None:
                raise SlotNotFoundError(str(slot_id))

            bookings = (await session.execute(
                select(func.count(Booking.id)).where(Booking.slot_id == slot_id)
            )).scalar_one()
            entries = (await session.execute(
                select(func.count(WaitlistEntry.id)).where(WaitlistEntry.slot_id == slot_id)
            )).scalar_one()

            if bookings or entries:
                raise SlotHasBookingsError(str(slot_id), bookings + entries)

            await session.execute(delete(Seat).where(Seat.slot_id == slot_id))
            deleted = await session.execute(
                delete(Slot)
                .where(Slot.id == slot_id, Slot.version == slot.version)
                .execution_options(synchronize_session=False)
            )
            if deleted.rowcount != 1:
                raise OptimisticLockError("slot", str(slot_id))
