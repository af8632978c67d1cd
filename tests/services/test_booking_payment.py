from datetime import date

import pytest
from sqlalchemy import select

from staybook.core.errors import BookingAlreadyCancelledError, PaymentFailedError
from staybook.domain.enums import BookingStatus, ClaimOwner, PaymentStatus
from staybook.domain.intervals import ReservationInterval
from staybook.jobs import payment_expiry
from staybook.models import PaymentEvent
from staybook.services.booking_expiry import PAYMENT_TIMEOUT, expire_pending_payments
from staybook.services.booking_state_machine import PaymentIntent
from tests.helpers.seed import claims_of

JUNE_1_4 = ReservationInterval("P1", date(2025, 6, 1), date(2025, 6, 4))
DEFERRED = PaymentIntent(provider="DEFERRED")


async def _pending(session, container):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    return await container.bookings.confirm(session, hold.id, DEFERRED)


@pytest.mark.asyncio
async def test_authorize_only_provider_leaves_booking_pending(session, container, clock):
    booking = await _pending(session, container)

    assert booking.status == BookingStatus.PENDING_PAYMENT
    assert booking.confirmed_at is None
    window = container.settings.PAYMENT_WINDOW_SECONDS
    assert (booking.payment_expires_at - clock.now()).total_seconds() == window

    payment = await container.bookings.get_payment(session, booking.id)
    assert payment.status == PaymentStatus.AUTHORIZED
    # pending bookings hold their nights, but no ops work yet
    assert await claims_of(session, "P1", ClaimOwner.BOOKING) == JUNE_1_4.nights()
    assert await container.ops_tasks.list_for_booking(session, booking.id) == []


@pytest.mark.asyncio
async def test_capture_confirms_and_creates_tasks(session, container, clock):
    booking = await _pending(session, container)
    clock.advance(120)

    confirmed = await container.bookings.capture_payment(session, booking.id)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.confirmed_at == clock.now()
    assert confirmed.payment_expires_at is None
    payment = await container.bookings.get_payment(session, booking.id)
    assert payment.status == PaymentStatus.CAPTURED

    events = (
        await session.execute(
            select(PaymentEvent.type).where(PaymentEvent.payment_id == payment.id).order_by(PaymentEvent.id)
        )
    ).scalars().all()
    await session.commit()
    assert [e.value for e in events] == ["AUTHORIZE", "CAPTURE"]

    tasks = await container.ops_tasks.list_for_booking(session, booking.id)
    assert len(tasks) == 3

    # capturing again is a no-op
    again = await container.bookings.capture_payment(session, booking.id)
    assert again.status == BookingStatus.CONFIRMED
    assert len(await container.ops_tasks.list_for_booking(session, booking.id)) == 3


@pytest.mark.asyncio
async def test_capture_after_window_fails(session, container, clock):
    booking = await _pending(session, container)
    clock.advance(container.settings.PAYMENT_WINDOW_SECONDS)

    with pytest.raises(PaymentFailedError):
        await container.bookings.capture_payment(session, booking.id)


@pytest.mark.asyncio
async def test_lapsed_pending_payments_are_cancelled(session, container, clock):
    booking = await _pending(session, container)
    booking_id = booking.id
    clock.advance(container.settings.PAYMENT_WINDOW_SECONDS + 1)

    assert await expire_pending_payments(session, container.bookings, now=clock.now()) == 1
    assert await expire_pending_payments(session, container.bookings, now=clock.now()) == 0

    cancelled = await container.bookings.get(session, booking_id)
    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancel_reason == PAYMENT_TIMEOUT
    assert await claims_of(session, "P1") == []
    # an authorization is never refunded
    payment = await container.bookings.get_payment(session, booking_id)
    assert payment.status == PaymentStatus.AUTHORIZED

    with pytest.raises(BookingAlreadyCancelledError):
        await container.bookings.capture_payment(session, booking_id)


@pytest.mark.asyncio
async def test_payment_expiry_job(session, container, clock):
    await _pending(session, container)
    assert await payment_expiry.run(container) == 0

    clock.advance(container.settings.PAYMENT_WINDOW_SECONDS)
    assert await payment_expiry.run(container, batch_size=1) == 1
