"""
Reservation engine: admits or waitlists reservation requests against a slot
and releases confirmed bookings, keeping capacity accounting exact under
concurrent callers.

Every mutation of a slot's ``booked`` counter is a compare-and-swap on
``slots.version`` inside a short transaction. A miss rolls the attempt back
and the retry decorator runs it again with backoff.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..models.booking import Booking, BookingStatus
from ..models.seat import Seat, SeatStatus
from ..models.slot import Slot, SlotStatus
from ..utils.exceptions import (
    BookingNotFoundError,
    BusyError,
    CapacityExceededError,
    OptimisticLockError,
    SeatConflictError,
    SlotNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from ..utils.retry import retry_on_concurrency_error
from .notification_service import NotificationEmitter, NotificationEvent, get_notification_emitter
from .waitlist_service import WaitlistService

if TYPE_CHECKING:
    from ..models.waitlist import WaitlistEntry
    from .waitlist_service import Promotion, WaitlistTicket

logger = logging.getLogger(__name__)


class ReservationOutcome(str, enum.Enum):
    """How a reservation request was resolved."""
    CONFIRMED = "CONFIRMED"
    WAITLISTED = "WAITLISTED"


@dataclass
class ReservationResult:
    """Outcome of ``reserve``: a booking or a waitlist ticket, never both."""
    status: ReservationOutcome
    booking: Optional[Booking] = None
    ticket: Optional["WaitlistTicket"] = None


@dataclass
class ReleaseResult:
    """Outcome of ``release``. ``freed_quantity`` is 0 for an already-cancelled booking."""
    booking_id: UUID
    freed_quantity: int
    promotions: List["Promotion"] = field(default_factory=list)


@dataclass
class SlotStatusSnapshot:
    """Capacity view of a slot at one committed point in time."""
    slot_id: UUID
    capacity: int
    booked: int
    available: int
    status: SlotStatus
    version: int


class ReservationService:
    """Service owning the booked counter of every slot."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Optional[NotificationEmitter] = None
    ):
        self.session_factory = session_factory
        self.settings = get_settings()
        self.notifier = notifier or get_notification_emitter()
        self.waitlist = WaitlistService(session_factory, self, self.notifier)

    async def reserve(
        self,
        slot_id: UUID,
        user_id: UUID,
        quantity: int,
        seats: Optional[Sequence[str]] = None
    ) -> ReservationResult:
        """
        Reserve capacity on a slot, or join its waitlist when capacity is short.

        Args:
            slot_id: Slot to reserve against
            user_id: Requesting user
            quantity: Number of units requested
            seats: Explicit seat labels; must match ``quantity`` when given

        Returns:
            ReservationResult with a confirmed booking or a waitlist ticket

        Raises:
            ValidationError: If quantity or seat labels are invalid
            SlotNotFoundError: If the slot doesn't exist
            SeatConflictError: If any requested seat is already held
            CapacityExceededError: If capacity is short and the waitlist is disabled
            BusyError: If contention outlasts the retry budget
        """
        labels = self._validate_request(quantity, seats)

        logger.info(f"Reserving {quantity} on slot {slot_id} for user {user_id}")

        result = await self._reserve_attempt(slot_id, user_id, quantity, labels)

        if result.status is ReservationOutcome.CONFIRMED:
            booking = result.booking
            log_business_event(
                "reservation_confirmed",
                {"booking_id": str(booking.id), "slot_id": str(slot_id), "quantity": quantity, "seats": booking.seats},
                user_id=str(user_id)
            )
        else:
            ticket = result.ticket
            log_business_event(
                "reservation_waitlisted",
                {"slot_id": str(slot_id), "quantity": quantity, "position": ticket.position},
                user_id=str(user_id)
            )
            if ticket.created:
                await self.waitlist.notify_added(ticket)

        return result

    async def release(self, booking_id: UUID) -> ReleaseResult:
        """
        Cancel a booking, return its units to the slot, then promote waiters.

        Releasing an already-cancelled booking is a no-op reporting 0 freed.

        Args:
            booking_id: Booking to cancel

        Returns:
            ReleaseResult with the freed quantity and any waitlist promotions

        Raises:
            BookingNotFoundError: If the booking doesn't exist
            BusyError: If contention outlasts the retry budget
        """
        freed, booking = await self._release_attempt(booking_id)

        if not freed:
            logger.info(f"Booking {booking_id} already cancelled, nothing released")
            return ReleaseResult(booking_id=booking_id, freed_quantity=0)

        log_business_event(
            "booking_released",
            {"booking_id": str(booking_id), "slot_id": str(booking.slot_id), "quantity": freed},
            user_id=str(booking.user_id)
        )
        await self.notifier.emit(
            NotificationEvent.BOOKING_CANCELLED,
            booking.user_id,
            booking.slot_id,
            {"bookingId": str(booking_id), "quantity": freed}
        )

        promotions: List["Promotion"] = []
        if self.settings.waitlist_enabled:
            try:
                promotions = await self.waitlist.promote(booking.slot_id)
            except BusyError as e:
                # The release itself is committed; waiters stay queued for the next release
                logger.warning(f"Promotion after releasing booking {booking_id} deferred: {e.message}")

        return ReleaseResult(booking_id=booking_id, freed_quantity=freed, promotions=promotions)

    async def get_slot_status(self, slot_id: UUID) -> SlotStatusSnapshot:
        """
        Read a consistent capacity snapshot of a slot.

        Raises:
            SlotNotFoundError: If the slot doesn't exist
        """
        async with self.session_factory() as session:
            slot = await self.load_slot(session, slot_id)
            return SlotStatusSnapshot(
                slot_id=slot.id,
                capacity=slot.capacity,
                booked=slot.booked,
                available=slot.available,
                status=slot.status,
                version=slot.version,
            )

    async def get_booking(self, booking_id: UUID, user_id: Optional[UUID] = None) -> Booking:
        """
        Get a booking by ID, optionally restricted to its owner.

        Raises:
            BookingNotFoundError: If no such booking is visible to the caller
        """
        async with self.session_factory() as session:
            query = select(Booking).where(Booking.id == booking_id)
            if user_id is not None:
                query = query.where(Booking.user_id == user_id)

            booking = (await session.execute(query)).scalar_one_or_none()
            if booking is None:
                raise BookingNotFoundError(str(booking_id))
            return booking

    async def get_user_bookings(
        self,
        user_id: UUID,
        status: Optional[BookingStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Booking]:
        """List a user's bookings, newest first."""
        async with self.session_factory() as session:
            query = select(Booking).where(Booking.user_id == user_id)
            if status is not None:
                query = query.where(Booking.status == status)

            query = query.order_by(Booking.created_at.desc(), Booking.id).limit(limit).offset(offset)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def load_slot(self, session: AsyncSession, slot_id: UUID) -> Slot:
        """Read a slot inside the caller's transaction."""
        slot = await session.get(Slot, slot_id)
        if slot is None:
            raise SlotNotFoundError(str(slot_id))
        return slot

    async def claim_slot_version(self, session: AsyncSession, slot: Slot) -> None:
        """
        Bump the slot version without touching capacity.

        Waitlist changes use this to serialize with reservations on the same slot.
        """
        result = await session.execute(
            update(Slot)
            .where(Slot.id == slot.id, Slot.version == slot.version)
            .values({Slot.version: Slot.version + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise OptimisticLockError("slot", str(slot.id))

    async def commit_promotion(self, session: AsyncSession, slot: Slot, entry: "WaitlistEntry") -> Booking:
        """Admit a waitlist entry, bypassing the waitlist check, inside the caller's transaction."""
        return await self._commit_reserve(
            session,
            slot,
            entry.user_id,
            entry.quantity,
            labels=None,
            waitlist_entry_id=entry.id
        )

    @retry_on_concurrency_error("reserve")
    async def _reserve_attempt(
        self,
        slot_id: UUID,
        user_id: UUID,
        quantity: int,
        labels: Optional[List[str]]
    ) -> ReservationResult:
        async with self.session_factory.begin() as session:
            slot = await self.load_slot(session, slot_id)

            if labels:
                await self._check_requested_seats(session, slot, labels)

            if slot.available < quantity:
                if not self.settings.waitlist_enabled:
                    raise CapacityExceededError(quantity, slot.available, slot_id)

                ticket = await self.waitlist.enqueue_in_transaction(session, slot, user_id, quantity)
                return ReservationResult(status=ReservationOutcome.WAITLISTED, ticket=ticket)

            booking = await self._commit_reserve(session, slot, user_id, quantity, labels)
            return ReservationResult(status=ReservationOutcome.CONFIRMED, booking=booking)

    @retry_on_concurrency_error("release")
    async def _release_attempt(self, booking_id: UUID):
        async with self.session_factory.begin() as session:
            booking = await session.get(Booking, booking_id)
            if booking is None:
                raise BookingNotFoundError(str(booking_id))

            if booking.status == BookingStatus.CANCELLED:
                return 0, booking

            # Only one concurrent release can flip the status
            cancelled = await session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == BookingStatus.CONFIRMED)
                .values(status=BookingStatus.CANCELLED, cancelled_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            if cancelled.rowcount == 0:
                return 0, booking

            slot = await self.load_slot(session, booking.slot_id)
            await self._release_reserve(session, slot, booking)
            return booking.quantity, booking

    async def _commit_reserve(
        self,
        session: AsyncSession,
        slot: Slot,
        user_id: UUID,
        quantity: int,
        labels: Optional[List[str]],
        waitlist_entry_id: Optional[UUID] = None
    ) -> Booking:
        """Increment ``booked`` via compare-and-swap and record the booking."""
        result = await session.execute(
            update(Slot)
            .where(
                Slot.id == slot.id,
                Slot.version == slot.version,
                Slot._booked + quantity <= Slot.capacity
            )
            .values({Slot._booked: Slot._booked + quantity, Slot.version: Slot.version + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise OptimisticLockError("slot", str(slot.id))

        if slot.seat_tracking and not labels:
            labels = await self._pick_free_seats(session, slot.id, quantity)

        booking = Booking(
            id=uuid4(),
            user_id=user_id,
            slot_id=slot.id,
            quantity=quantity,
            seats=list(labels or []),
            status=BookingStatus.CONFIRMED,
            waitlist_entry_id=waitlist_entry_id
        )
        session.add(booking)
        await session.flush()

        if labels:
            await self._assign_seats(session, slot.id, booking.id, labels)

        logger.debug(f"Slot {slot.id} booked {slot.booked} -> {slot.booked + quantity} (v{slot.version + 1})")
        return booking

    async def _release_reserve(self, session: AsyncSession, slot: Slot, booking: Booking) -> None:
        """Decrement ``booked`` via compare-and-swap and free the booking's seats."""
        result = await session.execute(
            update(Slot)
            .where(
                Slot.id == slot.id,
                Slot.version == slot.version,
                Slot._booked >= booking.quantity
            )
            .values({Slot._booked: Slot._booked - booking.quantity, Slot.version: Slot.version + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise OptimisticLockError("slot", str(slot.id))

        if booking.seats:
            await session.execute(
                update(Seat)
                .where(Seat.slot_id == slot.id, Seat.booking_id == booking.id)
                .values(status=SeatStatus.AVAILABLE, booking_id=None)
                .execution_options(synchronize_session=False)
            )

    async def _assign_seats(self, session: AsyncSession, slot_id: UUID, booking_id: UUID, labels: List[str]) -> None:
        result = await session.execute(
            update(Seat)
            .where(
                Seat.slot_id == slot_id,
                Seat.label.in_(labels),
                Seat.status == SeatStatus.AVAILABLE
            )
            .values(status=SeatStatus.BOOKED, booking_id=booking_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(labels):
            raise SeatConflictError(str(slot_id), labels)

    async def _pick_free_seats(self, session: AsyncSession, slot_id: UUID, quantity: int) -> List[str]:
        """Lowest free seats in row, then number, order."""
        result = await session.execute(
            select(Seat.label)
            .where(Seat.slot_id == slot_id, Seat.status == SeatStatus.AVAILABLE)
            .order_by(func.length(Seat.row), Seat.row, Seat.number)
            .limit(quantity)
        )
        labels = list(result.scalars().all())
        if len(labels) < quantity:
            # Seat map and counter disagree only while another writer is mid-flight
            raise OptimisticLockError("slot", str(slot_id))
        return labels

    async def _check_requested_seats(self, session: AsyncSession, slot: Slot, labels: List[str]) -> None:
        if not slot.seat_tracking:
            raise ValidationError(
                "Slot does not track individual seats",
                field_errors={"seats": ["Seat selection is not available for this slot"]}
            )

        result = await session.execute(
            select(Seat.label, Seat.status).where(Seat.slot_id == slot.id, Seat.label.in_(labels))
        )
        found = {label: status for label, status in result.all()}

        unknown = [label for label in labels if label not in found]
        if unknown:
            raise ValidationError(
                f"Unknown seats: {', '.join(unknown)}",
                field_errors={"seats": [f"Seat {label} does not exist" for label in unknown]}
            )

        held = [label for label in labels if found[label] != SeatStatus.AVAILABLE]
        if held:
            raise SeatConflictError(str(slot.id), held)

    def _validate_request(self, quantity: int, seats: Optional[Sequence[str]]) -> Optional[List[str]]:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                field_errors={"quantity": ["Must be greater than 0"]}
            )

        if quantity > self.settings.max_booking_quantity:
            raise ValidationError(
                f"Cannot book more than {self.settings.max_booking_quantity} units at once",
                field_errors={"quantity": [f"Maximum is {self.settings.max_booking_quantity}"]}
            )

        if not seats:
            return None

        labels = [label.strip() for label in seats]
        if len(labels) != quantity:
            raise ValidationError(
                "Number of seats must match quantity",
                field_errors={"seats": [f"Expected {quantity} seats, got {len(labels)}"]}
            )

        if len(set(labels)) != len(labels) or not all(labels):
            raise ValidationError(
                "Seat labels must be unique and non-empty",
                field_errors={"seats": ["Duplicate or empty seat label"]}
            )

        return labels
