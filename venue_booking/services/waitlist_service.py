"""
Waitlist service: queues requests that did not fit a slot and promotes them,
first-in first-out with fit, whenever capacity is released.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..models.booking import Booking
from ..models.slot import Slot
from ..models.waitlist import WaitlistEntry, WaitlistStatus
from ..utils.exceptions import OptimisticLockError, ValidationError
from ..utils.logging_config import log_business_event
from ..utils.retry import retry_on_concurrency_error
from .notification_service import NotificationEmitter, NotificationEvent

if TYPE_CHECKING:
    from .reservation_service import ReservationService

logger = logging.getLogger(__name__)


@dataclass
class WaitlistTicket:
    """A caller's place in a slot's queue."""
    entry_id: UUID
    slot_id: UUID
    user_id: UUID
    quantity: int
    status: WaitlistStatus
    arrived_at: datetime
    position: Optional[int]
    created: bool = True


@dataclass
class Promotion:
    """A waitlist entry converted into a confirmed booking."""
    entry_id: UUID
    user_id: UUID
    quantity: int
    booking: Booking


class WaitlistService:
    """Service for per-slot waitlists."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        reservations: "ReservationService",
        notifier: NotificationEmitter
    ):
        self.session_factory = session_factory
        self.reservations = reservations
        self.notifier = notifier
        self.settings = get_settings()

    async def enqueue(self, slot_id: UUID, user_id: UUID, quantity: int) -> WaitlistTicket:
        """
        Join a slot's waitlist.

        A user holds at most one pending entry per slot; joining again returns
        the existing ticket with ``created`` False.

        Args:
            slot_id: Slot to wait on
            user_id: Waiting user
            quantity: Units the user will accept, all or nothing

        Returns:
            WaitlistTicket with the 1-based queue position

        Raises:
            ValidationError: If quantity is invalid
            SlotNotFoundError: If the slot doesn't exist
            BusyError: If contention outlasts the retry budget
        """
        if quantity <= 0 or quantity > self.settings.max_booking_quantity:
            raise ValidationError(
                "Invalid waitlist quantity",
                field_errors={"quantity": [f"Must be between 1 and {self.settings.max_booking_quantity}"]}
            )

        ticket = await self._enqueue_attempt(slot_id, user_id, quantity)
        if ticket.created:
            await self.notify_added(ticket)
        return ticket

    async def enqueue_in_transaction(
        self,
        session: AsyncSession,
        slot: Slot,
        user_id: UUID,
        quantity: int
    ) -> WaitlistTicket:
        """Append an entry inside the caller's transaction, serialized on the slot version."""
        existing = await self._get_pending_entry(session, slot.id, user_id)
        if existing is not None:
            position = await self._position(session, existing)
            return self._ticket(existing, position, created=False)

        entry = WaitlistEntry(
            id=uuid4(),
            user_id=user_id,
            slot_id=slot.id,
            quantity=quantity,
            arrived_at=datetime.now(timezone.utc),
            status=WaitlistStatus.PENDING
        )
        session.add(entry)
        await self.reservations.claim_slot_version(session, slot)
        await session.flush()

        position = await self._position(session, entry)
        logger.info(f"User {user_id} waitlisted for {quantity} on slot {slot.id} at position {position}")
        return self._ticket(entry, position, created=True)

    async def promote(self, slot_id: UUID) -> List[Promotion]:
        """
        Promote pending entries while the head-most fitting entry fits.

        Each promotion is its own transaction. Scanning is FIFO: the earliest
        entry whose quantity fits the available capacity wins, and entries
        that don't fit keep their place.

        Args:
            slot_id: Slot whose queue to drain

        Returns:
            Promotions in the order they were committed

        Raises:
            SlotNotFoundError: If the slot doesn't exist
            BusyError: If contention outlasts the retry budget
        """
        promotions: List[Promotion] = []

        while True:
            promotion = await self._promote_next(slot_id)
            if promotion is None:
                break

            promotions.append(promotion)
            log_business_event(
                "waitlist_promoted",
                {
                    "slot_id": str(slot_id),
                    "booking_id": str(promotion.booking.id),
                    "quantity": promotion.quantity,
                },
                user_id=str(promotion.user_id)
            )
            await self.notifier.emit(
                NotificationEvent.WAITLIST_PROMOTED,
                promotion.user_id,
                slot_id,
                {
                    "bookingId": str(promotion.booking.id),
                    "quantity": promotion.quantity,
                    "seats": promotion.booking.seats,
                }
            )

        if promotions:
            logger.info(f"Promoted {len(promotions)} waitlist entries on slot {slot_id}")
        return promotions

    async def leave(self, slot_id: UUID, user_id: UUID) -> bool:
        """
        Withdraw the user's pending entry on a slot.

        Returns:
            True if an entry was withdrawn, False if none was pending
        """
        left = await self._leave_attempt(slot_id, user_id)
        if left:
            log_business_event("waitlist_left", {"slot_id": str(slot_id)}, user_id=str(user_id))
        return left

    async def get_ticket(self, slot_id: UUID, user_id: UUID) -> Optional[WaitlistTicket]:
        """The user's pending ticket on a slot, or None when not waiting."""
        async with self.session_factory() as session:
            entry = await self._get_pending_entry(session, slot_id, user_id)
            if entry is None:
                return None
            position = await self._position(session, entry)
            return self._ticket(entry, position, created=False)

    async def get_position(self, slot_id: UUID, user_id: UUID) -> Optional[int]:
        """1-based position of the user's pending entry, or None when not waiting."""
        ticket = await self.get_ticket(slot_id, user_id)
        return ticket.position if ticket else None

    async def get_slot_waitlist(
        self,
        slot_id: UUID,
        status: WaitlistStatus = WaitlistStatus.PENDING,
        limit: int = 100,
        offset: int = 0
    ) -> List[WaitlistEntry]:
        """Entries of a slot in queue order."""
        async with self.session_factory() as session:
            await self.reservations.load_slot(session, slot_id)
            result = await session.execute(
                select(WaitlistEntry)
                .where(WaitlistEntry.slot_id == slot_id, WaitlistEntry.status == status)
                .order_by(WaitlistEntry.arrived_at, WaitlistEntry.id)
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    async def get_user_entries(
        self,
        user_id: UUID,
        status: Optional[WaitlistStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[WaitlistTicket]:
        """A user's waitlist entries, newest first, with positions for pending ones."""
        async with self.session_factory() as session:
            query = select(WaitlistEntry).where(WaitlistEntry.user_id == user_id)
            if status is not None:
                query = query.where(WaitlistEntry.status == status)

            query = query.order_by(WaitlistEntry.arrived_at.desc()).limit(limit).offset(offset)
            entries = (await session.execute(query)).scalars().all()

            tickets = []
            for entry in entries:
                position = await self._position(session, entry) if entry.is_pending else None
                tickets.append(self._ticket(entry, position, created=False))
            return tickets

    async def notify_added(self, ticket: WaitlistTicket) -> None:
        await self.notifier.emit(
            NotificationEvent.WAITLIST_ADDED,
            ticket.user_id,
            ticket.slot_id,
            {"entryId": str(ticket.entry_id), "quantity": ticket.quantity, "position": ticket.position}
        )

    @retry_on_concurrency_error("enqueue")
    async def _enqueue_attempt(self, slot_id: UUID, user_id: UUID, quantity: int) -> WaitlistTicket:
        async with self.session_factory.begin() as session:
            slot = await self.reservations.load_slot(session, slot_id)
            return await self.enqueue_in_transaction(session, slot, user_id, quantity)

    @retry_on_concurrency_error("promote")
    async def _promote_next(self, slot_id: UUID) -> Optional[Promotion]:
        async with self.session_factory.begin() as session:
            slot = await self.reservations.load_slot(session, slot_id)
            if slot.available <= 0:
                return None

            entry = (await session.execute(
                select(WaitlistEntry)
                .where(
                    WaitlistEntry.slot_id == slot_id,
                    WaitlistEntry.status == WaitlistStatus.PENDING,
                    WaitlistEntry.quantity <= slot.available
                )
                .order_by(WaitlistEntry.arrived_at, WaitlistEntry.id)
                .limit(1)
            )).scalar_one_or_none()
            if entry is None:
                return None

            booking = await self.reservations.commit_promotion(session, slot, entry)

            resolved = await session.execute(
                update(WaitlistEntry)
                .where(WaitlistEntry.id == entry.id, WaitlistEntry.status == WaitlistStatus.PENDING)
                .values(
                    status=WaitlistStatus.PROMOTED,
                    booking_id=booking.id,
                    resolved_at=datetime.now(timezone.utc)
                )
                .execution_options(synchronize_session=False)
            )
            if resolved.rowcount != 1:
                raise OptimisticLockError("waitlist_entry", str(entry.id))

            return Promotion(entry_id=entry.id, user_id=entry.user_id, quantity=entry.quantity, booking=booking)

    @retry_on_concurrency_error("leave_waitlist")
    async def _leave_attempt(self, slot_id: UUID, user_id: UUID) -> bool:
        async with self.session_factory.begin() as session:
            slot = await self.reservations.load_slot(session, slot_id)
            entry = await self._get_pending_entry(session, slot_id, user_id)
            if entry is None:
                return False

            await self.reservations.claim_slot_version(session, slot)
            await session.execute(
                update(WaitlistEntry)
                .where(WaitlistEntry.id == entry.id, WaitlistEntry.status == WaitlistStatus.PENDING)
                .values(status=WaitlistStatus.EXPIRED, resolved_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            return True

    async def _get_pending_entry(self, session: AsyncSession, slot_id: UUID, user_id: UUID) -> Optional[WaitlistEntry]:
        result = await session.execute(
            select(WaitlistEntry).where(
                WaitlistEntry.slot_id == slot_id,
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.status == WaitlistStatus.PENDING
            )
        )
        return result.scalar_one_or_none()

    async def _position(self, session: AsyncSession, entry: WaitlistEntry) -> int:
        ahead = await session.execute(
            select(func.count(WaitlistEntry.id)).where(
                WaitlistEntry.slot_id == entry.slot_id,
                WaitlistEntry.status == WaitlistStatus.PENDING,
                or_(
                    WaitlistEntry.arrived_at < entry.arrived_at,
                    and_(WaitlistEntry.arrived_at == entry.arrived_at, WaitlistEntry.id < entry.id)
                )
            )
        )
        return ahead.scalar_one() + 1

    @staticmethod
    def _ticket(entry: WaitlistEntry, position: Optional[int], created: bool) -> WaitlistTicket:
        return WaitlistTicket(
            entry_id=entry.id,
            slot_id=entry.slot_id,
            user_id=entry.user_id,
            quantity=entry.quantity,
            status=entry.status,
            arrived_at=entry.arrived_at,
            position=position,
            created=created
        )
