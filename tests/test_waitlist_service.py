"""
Waitlist tests: queueing, FIFO-with-fit promotion and withdrawal.
"""

from uuid import uuid4

import pytest

from venue_booking.models import BookingStatus, WaitlistStatus
from venue_booking.services.notification_service import NotificationEvent
from venue_booking.services.reservation_service import ReservationOutcome
from venue_booking.utils.exceptions import SlotNotFoundError, ValidationError


async def fill(reservations, slot, *quantities):
    """Book the slot with one booking per quantity, returning the bookings."""
    bookings = []
    for quantity in quantities:
        result = await reservations.reserve(slot.id, uuid4(), quantity)
        assert result.status is ReservationOutcome.CONFIRMED
        bookings.append(result.booking)
    return bookings


class TestEnqueue:

    async def test_enqueue_assigns_positions_in_arrival_order(self, reservations, make_slot):
        slot = await make_slot(capacity=1)
        await fill(reservations, slot, 1)

        first = await reservations.waitlist.enqueue(slot.id, uuid4(), 1)
        second = await reservations.waitlist.enqueue(slot.id, uuid4(), 1)

        assert first.position == 1
        assert second.position == 2
        assert first.status == WaitlistStatus.PENDING

    async def test_enqueue_twice_returns_existing_entry(self, reservations, make_slot, notifier):
        slot = await make_slot(capacity=1)
        await fill(reservations, slot, 1)
        user_id = uuid4()

        first = await reservations.waitlist.enqueue(slot.id, user_id, 1)
        again = await reservations.reserve(slot.id, user_id, 1)

        assert again.status is ReservationOutcome.WAITLISTED
        assert again.ticket.entry_id == first.entry_id
        assert again.ticket.created is False
        assert len(notifier.of(NotificationEvent.WAITLIST_ADDED)) == 1

        entries = await reservations.waitlist.get_slot_waitlist(slot.id)
        assert len(entries) == 1

    async def test_enqueue_validates_quantity(self, reservations, make_slot):
        slot = await make_slot(capacity=1)

        with pytest.raises(ValidationError):
            await reservations.waitlist.enqueue(slot.id, uuid4(), 0)

    async def test_enqueue_unknown_slot(self, reservations):
        with pytest.raises(SlotNotFoundError):
            await reservations.waitlist.enqueue(uuid4(), uuid4(), 1)


class TestPromotion:

    async def test_release_promotes_waiting_user(self, reservations, make_slot, notifier):
        slot = await make_slot(capacity=2)
        booking_a, _ = await fill(reservations, slot, 1, 1)
        user_c = uuid4()
        waitlisted = await reservations.reserve(slot.id, user_c, 1)
        assert waitlisted.status is ReservationOutcome.WAITLISTED

        released = await reservations.release(booking_a.id)

        assert released.freed_quantity == 1
        assert len(released.promotions) == 1
        promotion = released.promotions[0]
        assert promotion.user_id == user_c
        assert promotion.booking.status == BookingStatus.CONFIRMED
        assert promotion.booking.waitlist_entry_id == waitlisted.ticket.entry_id

        promoted = notifier.of(NotificationEvent.WAITLIST_PROMOTED)
        assert [n.user_id for n in promoted] == [user_c]

        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 2

        tickets = await reservations.waitlist.get_user_entries(user_c)
        assert tickets[0].status == WaitlistStatus.PROMOTED
        assert tickets[0].position is None

    async def test_promotion_skips_entries_that_do_not_fit(self, reservations, make_slot):
        slot = await make_slot(capacity=4)
        _, small_booking = await fill(reservations, slot, 3, 1)
        big_waiter, small_waiter = uuid4(), uuid4()
        await reservations.waitlist.enqueue(slot.id, big_waiter, 3)
        await reservations.waitlist.enqueue(slot.id, small_waiter, 1)

        released = await reservations.release(small_booking.id)

        assert [p.user_id for p in released.promotions] == [small_waiter]
        assert await reservations.waitlist.get_position(slot.id, big_waiter) == 1
        assert await reservations.waitlist.get_position(slot.id, small_waiter) is None

    async def test_large_entry_promoted_after_cumulative_releases(self, reservations, make_slot):
        slot = await make_slot(capacity=10)
        bookings = await fill(reservations, slot, 3, 3, 4)
        waiter = uuid4()
        waitlisted = await reservations.waitlist.enqueue(slot.id, waiter, 10)

        first = await reservations.release(bookings[0].id)
        second = await reservations.release(bookings[1].id)

        assert first.promotions == second.promotions == []
        assert await reservations.waitlist.get_position(slot.id, waiter) == 1

        third = await reservations.release(bookings[2].id)

        assert [p.quantity for p in third.promotions] == [10]
        assert third.promotions[0].entry_id == waitlisted.entry_id
        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 10
        assert await reservations.waitlist.get_position(slot.id, waiter) is None

    async def test_promotion_is_first_in_first_out(self, reservations, make_slot):
        slot = await make_slot(capacity=1)
        (booking,) = await fill(reservations, slot, 1)
        first, second = uuid4(), uuid4()
        await reservations.waitlist.enqueue(slot.id, first, 1)
        await reservations.waitlist.enqueue(slot.id, second, 1)

        released = await reservations.release(booking.id)

        assert [p.user_id for p in released.promotions] == [first]
        assert await reservations.waitlist.get_position(slot.id, second) == 1

    async def test_promotion_drains_while_capacity_remains(self, reservations, make_slot):
        slot = await make_slot(capacity=3)
        (booking,) = await fill(reservations, slot, 3)
        waiters = [uuid4() for _ in range(4)]
        for user_id in waiters:
            await reservations.waitlist.enqueue(slot.id, user_id, 1)

        released = await reservations.release(booking.id)

        assert [p.user_id for p in released.promotions] == waiters[:3]
        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 3
        assert await reservations.waitlist.get_position(slot.id, waiters[3]) == 1

    async def test_promotion_never_exceeds_available_capacity(self, reservations, make_slot):
        slot = await make_slot(capacity=5)
        big, small = await fill(reservations, slot, 3, 2)
        await reservations.waitlist.enqueue(slot.id, uuid4(), 2)
        await reservations.waitlist.enqueue(slot.id, uuid4(), 2)
        await reservations.waitlist.enqueue(slot.id, uuid4(), 1)

        released = await reservations.release(big.id)

        assert sum(p.quantity for p in released.promotions) <= released.freed_quantity
        assert [p.quantity for p in released.promotions] == [2, 1]
        snapshot = await reservations.get_slot_status(slot.id)
        assert snapshot.booked == 5

    async def test_promote_is_a_noop_once_entries_are_resolved(self, reservations, make_slot):
        slot = await make_slot(capacity=1)
        (booking,) = await fill(reservations, slot, 1)
        await reservations.waitlist.enqueue(slot.id, uuid4(), 1)
        await reservations.release(booking.id)

        assert await reservations.waitlist.promote(slot.id) == []

    async def test_promotion_assigns_seats_on_tracked_slot(self, reservations, make_slot):
        slot = await make_slot(seat_tracking=True, seat_rows=1, seats_per_row=2)
        booking = (await reservations.reserve(slot.id, uuid4(), 2, seats=["A1", "A2"])).booking
        await reservations.waitlist.enqueue(slot.id, uuid4(), 1)

        released = await reservations.release(booking.id)

        assert released.promotions[0].booking.seats == ["A1"]


class TestLeave:

    async def test_leave_withdraws_pending_entry(self, reservations, make_slot):
        slot = await make_slot(capacity=1)
        (booking,) = await fill(reservations, slot, 1)
        user_id = uuid4()
        await reservations.waitlist.enqueue(slot.id, user_id, 1)

        assert await reservations.waitlist.leave(slot.id, user_id) is True
        assert await reservations.waitlist.leave(slot.id, user_id) is False

        released = await reservations.release(booking.id)
        assert released.promotions == []

        tickets = await reservations.waitlist.get_user_entries(user_id)
        assert tickets[0].status == WaitlistStatus.EXPIRED

    async def test_rejoin_after_leaving_creates_new_entry(self, reservations, make_slot):
        slot = await make_slot(capacity=1)
        await fill(reservations, slot, 1)
        user_id = uuid4()
        first = await reservations.waitlist.enqueue(slot.id, user_id, 1)
        await reservations.waitlist.leave(slot.id, user_id)

        second = await reservations.waitlist.enqueue(slot.id, user_id, 2)

        assert second.created is True
        assert second.entry_id != first.entry_id
        assert second.quantity == 2
