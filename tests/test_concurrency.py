"""
Concurrency tests: capacity and seat invariants under simultaneous callers.

Callers that exhaust their retry budget get ``BusyError``; that is an allowed
outcome and never leaves partial state behind.
"""

import asyncio
import random
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from venue_booking.models import Booking, BookingStatus, Seat, SeatStatus
from venue_booking.services.reservation_service import ReservationOutcome
from venue_booking.utils.exceptions import BusyError, SeatConflictError


@pytest.fixture
def patient_settings(settings, monkeypatch):
    """Generous retry budget so contention resolves instead of surfacing as busy."""
    monkeypatch.setattr(settings, "reservation_max_attempts", 50)
    return settings


async def confirmed_quantity(session_factory, slot_id) -> int:
    async with session_factory() as session:
        total = await session.execute(
            select(func.coalesce(func.sum(Booking.quantity), 0)).where(
                Booking.slot_id == slot_id,
                Booking.status == BookingStatus.CONFIRMED
            )
        )
        return total.scalar_one()


async def test_last_unit_goes_to_exactly_one_caller(reservations, make_slot, session_factory, patient_settings):
    slot = await make_slot(capacity=1)

    results = await asyncio.gather(
        *(reservations.reserve(slot.id, uuid4(), 1) for _ in range(20)),
        return_exceptions=True
    )

    unexpected = [r for r in results if isinstance(r, Exception) and not isinstance(r, BusyError)]
    assert unexpected == []

    outcomes = [r.status for r in results if not isinstance(r, Exception)]
    assert outcomes.count(ReservationOutcome.CONFIRMED) == 1
    assert all(o in (ReservationOutcome.CONFIRMED, ReservationOutcome.WAITLISTED) for o in outcomes)

    snapshot = await reservations.get_slot_status(slot.id)
    assert snapshot.booked == 1
    assert await confirmed_quantity(session_factory, slot.id) == 1


async def test_concurrent_reserves_never_oversell(reservations, make_slot, session_factory, patient_settings):
    slot = await make_slot(capacity=7)

    results = await asyncio.gather(
        *(reservations.reserve(slot.id, uuid4(), random.randint(1, 3)) for _ in range(15)),
        return_exceptions=True
    )

    assert not [r for r in results if isinstance(r, Exception) and not isinstance(r, BusyError)]

    confirmed = sum(
        r.booking.quantity for r in results
        if not isinstance(r, Exception) and r.status is ReservationOutcome.CONFIRMED
    )
    snapshot = await reservations.get_slot_status(slot.id)

    assert confirmed <= slot.capacity
    assert snapshot.booked == confirmed
    assert await confirmed_quantity(session_factory, slot.id) == confirmed


async def test_concurrent_releases_free_once(reservations, make_slot, patient_settings):
    slot = await make_slot(capacity=5)
    booking = (await reservations.reserve(slot.id, uuid4(), 3)).booking

    results = await asyncio.gather(
        *(reservations.release(booking.id) for _ in range(6)),
        return_exceptions=True
    )

    assert not [r for r in results if isinstance(r, Exception) and not isinstance(r, BusyError)]
    assert sum(r.freed_quantity for r in results if not isinstance(r, Exception)) == 3

    snapshot = await reservations.get_slot_status(slot.id)
    assert snapshot.booked == 0


async def test_same_seat_is_never_double_booked(reservations, make_slot, session_factory, patient_settings):
    slot = await make_slot(seat_tracking=True, seat_rows=1, seats_per_row=4)

    results = await asyncio.gather(
        *(reservations.reserve(slot.id, uuid4(), 1, seats=["A1"]) for _ in range(8)),
        return_exceptions=True
    )

    confirmed = [r for r in results if not isinstance(r, Exception) and r.status is ReservationOutcome.CONFIRMED]
    failures = [r for r in results if isinstance(r, Exception)]

    assert len(confirmed) == 1
    assert all(isinstance(e, (SeatConflictError, BusyError)) for e in failures)

    async with session_factory() as session:
        seat = (await session.execute(
            select(Seat).where(Seat.slot_id == slot.id, Seat.label == "A1")
        )).scalar_one()
    assert seat.status == SeatStatus.BOOKED
    assert seat.booking_id == confirmed[0].booking.id


async def test_auto_assigned_seats_are_distinct(reservations, make_slot, session_factory, patient_settings):
    slot = await make_slot(seat_tracking=True, seat_rows=2, seats_per_row=3)

    results = await asyncio.gather(
        *(reservations.reserve(slot.id, uuid4(), 2) for _ in range(5)),
        return_exceptions=True
    )

    labels = [
        label
        for r in results
        if not isinstance(r, Exception) and r.status is ReservationOutcome.CONFIRMED
        for label in r.booking.seats
    ]
    assert len(labels) == len(set(labels))
    assert len(labels) <= 6

    async with session_factory() as session:
        booked_seats = (await session.execute(
            select(func.count(Seat.id)).where(Seat.slot_id == slot.id, Seat.status == SeatStatus.BOOKED)
        )).scalar_one()
    snapshot = await reservations.get_slot_status(slot.id)
    assert booked_seats == snapshot.booked == len(labels)


async def test_mixed_traffic_keeps_counter_consistent(reservations, make_slot, session_factory, patient_settings):
    slot = await make_slot(capacity=4)
    seeded = [
        (await reservations.reserve(slot.id, uuid4(), 1)).booking
        for _ in range(4)
    ]

    operations = [reservations.release(b.id) for b in seeded[:2]]
    operations += [reservations.reserve(slot.id, uuid4(), 1) for _ in range(6)]
    random.shuffle(operations)

    results = await asyncio.gather(*operations, return_exceptions=True)
    assert not [r for r in results if isinstance(r, Exception) and not isinstance(r, BusyError)]

    snapshot = await reservations.get_slot_status(slot.id)
    assert snapshot.booked <= slot.capacity
    assert snapshot.booked == await confirmed_quantity(session_factory, slot.id)
