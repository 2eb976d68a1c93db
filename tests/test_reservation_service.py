"""
Reservation engine tests: admission, seat selection and release.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from venue_booking.models import Booking, BookingStatus, Seat, SeatStatus, SlotStatus
from venue_booking.services.notification_service import NotificationEvent
from venue_booking.services.reservation_service import ReservationOutcome
from venue_booking.utils.exceptions import (
    BookingNotFoundError,
    CapacityExceededError,
    SeatConflictError,
    SlotNotFoundError,
    ValidationError,
)


class TestReserve:
    """Admission against slot capacity."""

    async def test_reserve_confirms_when_capacity_allows(self, reservations, make_slot):
        slot = await make_slot(capacity=5)
        user_id = uuid4()

        result = await reservations.reserve(slot.id, user_id, 2)

        assert result.status is ReservationOutcome.CONFIRMED
        assert result.ticket is None
        assert result.booking.quantity == 2
        assert result.booking.user_id == user_id
        assert result.booking.status == BookingStatus.CONFIRMED

        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 2
        assert snapshot.available == 3
        assert snapshot.status == SlotStatus.AVAILABLE

    async def test_reserve_exact_remaining_capacity_marks_slot_full(self, reservations, make_slot):
        slot = await make_slot(capacity=3)

        await reservations.reserve(slot.id, uuid4(), 3)

        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.available == 0
        assert snapshot.status == SlotStatus.FULL

    async def test_reserve_bumps_slot_version(self, reservations, make_slot):
        slot = await make_slot(capacity=5)
        before = await reservations.get_slot_status(slot.id)

        await reservations.reserve(slot.id, uuid4(), 1)

        after = await reservations.get_slot_status(slot.id)
        assert after.version == before.version + 1

    async def test_reserve_over_capacity_is_waitlisted(self, reservations, make_slot, notifier):
        slot = await make_slot(capacity=2)
        await reservations.reserve(slot.id, uuid4(), 2)
        waiting_user = uuid4()

        result = await reservations.reserve(slot.id, waiting_user, 1)

        assert result.status is ReservationOutcome.WAITLISTED
        assert result.booking is None
        assert result.ticket.position == 1
        assert result.ticket.created is True

        added = notifier.of(NotificationEvent.WAITLIST_ADDED)
        assert len(added) == 1
        assert added[0].user_id == waiting_user
        assert added[0].slot_id == slot.id

        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 2

    async def test_reserve_over_capacity_without_waitlist_raises(self, reservations, make_slot, settings, monkeypatch):
        monkeypatch.setattr(settings, "waitlist_enabled", False)
        slot = await make_slot(capacity=1)

        with pytest.raises(CapacityExceededError) as exc_info:
            await reservations.reserve(slot.id, uuid4(), 2)

        assert exc_info.value.details["available"] == 1

    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_reserve_rejects_non_positive_quantity(self, reservations, make_slot, quantity):
        slot = await make_slot(capacity=5)

        with pytest.raises(ValidationError):
            await reservations.reserve(slot.id, uuid4(), quantity)

    async def test_reserve_rejects_quantity_above_limit(self, reservations, make_slot, settings):
        slot = await make_slot(capacity=50)

        with pytest.raises(ValidationError):
            await reservations.reserve(slot.id, uuid4(), settings.max_booking_quantity + 1)

    async def test_reserve_unknown_slot(self, reservations):
        with pytest.raises(SlotNotFoundError):
            await reservations.reserve(uuid4(), uuid4(), 1)


class TestSeatSelection:
    """Seat ledger behaviour on seat-tracked slots."""

    async def test_explicit_seats_are_booked(self, reservations, make_slot, session_factory):
        slot = await make_slot(seat_tracking=True, seat_rows=2, seats_per_row=4)

        result = await reservations.reserve(slot.id, uuid4(), 2, seats=["A1", "A2"])

        assert result.booking.seats == ["A1", "A2"]
        async with session_factory() as session:
            seats = (await session.execute(
                select(Seat).where(Seat.slot_id == slot.id, Seat.label.in_(["A1", "A2"]))
            )).scalars().all()
        assert {seat.status for seat in seats} == {SeatStatus.BOOKED}
        assert {seat.booking_id for seat in seats} == {result.booking.id}

    async def test_seat_conflict_leaves_state_untouched(self, reservations, make_slot):
        slot = await make_slot(seat_tracking=True, seat_rows=2, seats_per_row=4)
        await reservations.reserve(slot.id, uuid4(), 1, seats=["A1"])

        with pytest.raises(SeatConflictError) as exc_info:
            await reservations.reserve(slot.id, uuid4(), 2, seats=["A1", "A3"])

        assert exc_info.value.labels == ["A1"]
        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 1

    async def test_seats_are_auto_assigned_in_row_order(self, reservations, make_slot):
        slot = await make_slot(seat_tracking=True, seat_rows=2, seats_per_row=2)
        await reservations.reserve(slot.id, uuid4(), 1, seats=["A1"])

        result = await reservations.reserve(slot.id, uuid4(), 2)

        assert result.booking.seats == ["A2", "B1"]

    async def test_unknown_seat_label_is_invalid(self, reservations, make_slot):
        slot = await make_slot(seat_tracking=True, seat_rows=1, seats_per_row=2)

        with pytest.raises(ValidationError):
            await reservations.reserve(slot.id, uuid4(), 1, seats=["Z9"])

    async def test_seats_on_untracked_slot_are_invalid(self, reservations, make_slot):
        slot = await make_slot(capacity=5)

        with pytest.raises(ValidationError):
            await reservations.reserve(slot.id, uuid4(), 1, seats=["A1"])

    async def test_seat_count_must_match_quantity(self, reservations, make_slot):
        slot = await make_slot(seat_tracking=True, seat_rows=1, seats_per_row=4)

        with pytest.raises(ValidationError):
            await reservations.reserve(slot.id, uuid4(), 2, seats=["A1"])

    async def test_duplicate_seat_labels_are_invalid(self, reservations, make_slot):
        slot = await make_slot(seat_tracking=True, seat_rows=1, seats_per_row=4)

        with pytest.raises(ValidationError):
            await reservations.reserve(slot.id, uuid4(), 2, seats=["A1", "A1"])


class TestRelease:
    """Cancellation and capacity return."""

    async def test_release_frees_capacity(self, reservations, make_slot, notifier):
        slot = await make_slot(capacity=4)
        booking = (await reservations.reserve(slot.id, uuid4(), 3)).booking

        result = await reservations.release(booking.id)

        assert result.freed_quantity == 3
        assert result.promotions == []
        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 0

        cancelled = await reservations.get_booking(booking.id)
        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert len(notifier.of(NotificationEvent.BOOKING_CANCELLED)) == 1

    async def test_release_is_idempotent(self, reservations, make_slot):
        slot = await make_slot(capacity=4)
        booking = (await reservations.reserve(slot.id, uuid4(), 2)).booking

        first = await reservations.release(booking.id)
        second = await reservations.release(booking.id)

        assert first.freed_quantity == 2
        assert second.freed_quantity == 0
        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 0

    async def test_release_returns_seats(self, reservations, make_slot, slot_service):
        slot = await make_slot(seat_tracking=True, seat_rows=1, seats_per_row=3)
        booking = (await reservations.reserve(slot.id, uuid4(), 2, seats=["A2", "A3"])).booking

        await reservations.release(booking.id)

        seats = await slot_service.get_slot_seats(slot.id)
        assert all(seat.status == SeatStatus.AVAILABLE for seat in seats)
        assert all(seat.booking_id is None for seat in seats)

    async def test_release_unknown_booking(self, reservations):
        with pytest.raises(BookingNotFoundError):
            await reservations.release(uuid4())

    async def test_reserve_release_reserve_round_trip(self, reservations, make_slot):
        slot = await make_slot(capacity=5)
        initial = await reservations.get_slot_status(slot.id)

        booking = (await reservations.reserve(slot.id, uuid4(), 4)).booking
        await reservations.release(booking.id)
        restored = await reservations.get_slot_status(slot.id)

        assert restored.available == initial.available

        again = await reservations.reserve(slot.id, uuid4(), 4)
        assert again.status is ReservationOutcome.CONFIRMED


class TestBookingQueries:
    """Booking lookups."""

    async def test_get_booking_restricted_to_owner(self, reservations, make_slot):
        slot = await make_slot(capacity=5)
        owner = uuid4()
        booking = (await reservations.reserve(slot.id, owner, 1)).booking

        assert (await reservations.get_booking(booking.id, user_id=owner)).id == booking.id
        with pytest.raises(BookingNotFoundError):
            await reservations.get_booking(booking.id, user_id=uuid4())

    async def test_get_user_bookings_filters_by_status(self, reservations, make_slot):
        slot = await make_slot(capacity=5)
        user_id = uuid4()
        kept = (await reservations.reserve(slot.id, user_id, 1)).booking
        dropped = (await reservations.reserve(slot.id, user_id, 1)).booking
        await reservations.reserve(slot.id, uuid4(), 1)
        await reservations.release(dropped.id)

        everything = await reservations.get_user_bookings(user_id)
        confirmed = await reservations.get_user_bookings(user_id, status=BookingStatus.CONFIRMED)

        assert {b.id for b in everything} == {kept.id, dropped.id}
        assert [b.id for b in confirmed] == [kept.id]
        assert all(isinstance(b, Booking) for b in everything)
