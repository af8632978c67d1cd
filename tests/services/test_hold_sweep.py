from datetime import date

import pytest

from staybook.domain.enums import HoldStatus
from staybook.domain.intervals import ReservationInterval
from staybook.jobs import hold_ttl as hold_ttl_job
from staybook.models import Hold
from staybook.services.booking_state_machine import PaymentIntent
from staybook.services.hold_ttl import sweep_expired_holds
from tests.helpers.seed import claims_of, count_rows


def iv(a: int, b: int, pid: str = "P1") -> ReservationInterval:
    return ReservationInterval(pid, date(2025, 6, a), date(2025, 6, b))


@pytest.mark.asyncio
async def test_sweep_expires_only_lapsed_active_holds(session, container, clock):
    lapsed = await container.holds.create_hold(session, iv(1, 3), 60)
    released = await container.holds.create_hold(session, iv(3, 5), 60)
    consumed = await container.holds.create_hold(session, iv(5, 7), 60)
    live = await container.holds.create_hold(session, iv(7, 9), 3600)

    await container.holds.release_hold(session, released.id)
    await container.bookings.confirm(session, consumed.id, PaymentIntent())

    clock.advance(120)
    moved = await sweep_expired_holds(session, now=clock.now(), batch_size=2)
    assert moved == 1

    statuses = {
        h.id: (await container.holds.get_hold(session, h.id)).status
        for h in (lapsed, released, consumed, live)
    }
    assert statuses == {
        lapsed.id: HoldStatus.EXPIRED,
        released.id: HoldStatus.RELEASED,
        consumed.id: HoldStatus.CONSUMED,
        live.id: HoldStatus.ACTIVE,
    }
    assert date(2025, 6, 1) not in await claims_of(session, "P1")

    # second run is a no-op
    assert await sweep_expired_holds(session, now=clock.now()) == 0


@pytest.mark.asyncio
async def test_sweep_walks_every_batch(session, container, clock):
    for day in range(1, 8):
        await container.holds.create_hold(session, iv(day, day + 1), 60)
    clock.advance(61)

    assert await sweep_expired_holds(session, now=clock.now(), batch_size=3) == 7
    assert await count_rows(session, Hold, Hold.status == HoldStatus.EXPIRED) == 7
    assert await claims_of(session, "P1") == []


@pytest.mark.asyncio
async def test_job_run_uses_its_own_sessions(async_session_maker, session, container, clock):
    await container.holds.create_hold(session, iv(1, 2), 60)
    clock.advance(61)

    assert await hold_ttl_job.run(async_session_maker, clock=clock) == 1
    assert await hold_ttl_job.run(async_session_maker, clock=clock) == 0
