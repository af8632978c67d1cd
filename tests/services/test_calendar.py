from datetime import date

import pytest

from staybook.core.errors import HoldConflictError, InvalidIntervalError, NotFoundError
from staybook.domain.enums import DayStatus
from staybook.domain.intervals import ReservationInterval
from staybook.services.booking_state_machine import PaymentIntent


def iv(a: int, b: int, pid: str = "P1") -> ReservationInterval:
    return ReservationInterval(pid, date(2025, 6, a), date(2025, 6, b))


@pytest.mark.asyncio
async def test_conflicts_list_holds_and_bookings(session, container):
    hold = await container.holds.create_hold(session, iv(1, 4))
    other = await container.holds.create_hold(session, iv(6, 8))
    booking = await container.bookings.confirm(session, other.id, PaymentIntent())

    found = await container.calendar.conflicts(session, iv(3, 7))
    assert [(c.kind, c.id) for c in found] == [("HOLD", hold.id), ("BOOKING", booking.id)]

    # a hold does not conflict with itself
    assert await container.calendar.conflicts(session, iv(1, 4), exclude_id=hold.id) == []
    # check-out day is free
    assert await container.calendar.conflicts(session, iv(4, 6)) == []


@pytest.mark.asyncio
async def test_conflicts_ignore_lazily_expired_holds(session, container, clock):
    await container.holds.create_hold(session, iv(1, 4), 60)
    clock.advance(60)
    assert await container.calendar.conflicts(session, iv(1, 4)) == []


@pytest.mark.asyncio
async def test_availability_by_night(session, container, clock):
    hold = await container.holds.create_hold(session, iv(1, 3))
    booked_hold = await container.holds.create_hold(session, iv(3, 4))
    booking = await container.bookings.confirm(session, booked_hold.id, PaymentIntent())
    await container.calendar.block(session, iv(5, 6))

    days = await container.calendar.availability(session, "P1", date(2025, 6, 1), date(2025, 6, 7))

    assert [d.status for d in days] == [
        DayStatus.HELD,
        DayStatus.HELD,
        DayStatus.BOOKED,
        DayStatus.AVAILABLE,
        DayStatus.BLOCKED,
        DayStatus.AVAILABLE,
    ]
    assert days[0].owner_id == hold.id
    assert days[2].owner_id == booking.id

    clock.advance(container.settings.HOLD_TTL_DEFAULT_SECONDS)
    days = await container.calendar.availability(session, "P1", date(2025, 6, 1), date(2025, 6, 3))
    assert [d.status for d in days] == [DayStatus.AVAILABLE, DayStatus.AVAILABLE]


@pytest.mark.asyncio
async def test_availability_range_checks(session, container):
    with pytest.raises(InvalidIntervalError):
        await container.calendar.availability(session, "P1", date(2025, 6, 5), date(2025, 6, 5))
    with pytest.raises(InvalidIntervalError):
        await container.calendar.availability(session, "P1", date(2025, 1, 1), date(2026, 6, 1))
    with pytest.raises(NotFoundError):
        await container.calendar.availability(session, "NOPE", date(2025, 6, 1), date(2025, 6, 2))


@pytest.mark.asyncio
async def test_block_is_idempotent_and_unblock_frees(session, container):
    assert await container.calendar.block(session, iv(10, 13), note="owner stay") == [
        date(2025, 6, 10),
        date(2025, 6, 11),
        date(2025, 6, 12),
    ]
    assert await container.calendar.block(session, iv(11, 14)) == [date(2025, 6, 13)]

    assert await container.calendar.unblock(session, iv(10, 12)) == 2
    hold = await container.holds.create_hold(session, iv(10, 12))
    assert hold.id


@pytest.mark.asyncio
async def test_block_over_held_nights_conflicts(session, container):
    await container.holds.create_hold(session, iv(1, 4))
    with pytest.raises(HoldConflictError) as ei:
        await container.calendar.block(session, iv(3, 5))
    assert ei.value.context["nights"] == ["2025-06-03"]
