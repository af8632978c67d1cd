from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from staybook.container import build_container
from staybook.core.clock import UTC
from staybook.core.errors import (
    HoldAlreadyConsumedError,
    HoldAlreadyTerminalError,
    HoldConflictError,
    HoldExpiredError,
    IdempotencyKeyReusedError,
    NotFoundError,
    PaymentAmountMismatchError,
    PaymentFailedError,
    UnknownProviderError,
)
from staybook.domain.enums import BookingStatus, ClaimOwner, HoldStatus, OpsTaskType, PaymentStatus
from staybook.domain.intervals import ReservationInterval
from staybook.models import Booking, Hold, OpsTask, Payment, PaymentEvent
from staybook.services.booking_state_machine import PaymentIntent
from tests.helpers.cascade import FailingCascade, RecordingListener
from tests.helpers.seed import claims_of, count_rows

JUNE_1_4 = ReservationInterval("P1", date(2025, 6, 1), date(2025, 6, 4))


@pytest.mark.asyncio
async def test_confirm_creates_booking_payment_and_tasks(session, container, clock):
    hold = await container.holds.create_hold(session, JUNE_1_4, 900)

    booking = await container.bookings.confirm(
        session, hold.id, PaymentIntent(amount=Decimal("500.00"), currency="aed"), trace_id="t_confirm"
    )

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.hold_id == hold.id
    assert (booking.check_in, booking.check_out) == (JUNE_1_4.check_in, JUNE_1_4.check_out)
    assert booking.confirmed_at == clock.now()
    assert booking.payment_expires_at is None

    consumed = await container.holds.get_hold(session, hold.id)
    assert consumed.status == HoldStatus.CONSUMED
    assert consumed.booking_id == booking.id

    assert await claims_of(session, "P1", ClaimOwner.HOLD) == []
    assert await claims_of(session, "P1", ClaimOwner.BOOKING) == JUNE_1_4.nights()

    payment = await container.bookings.get_payment(session, booking.id)
    assert payment.status == PaymentStatus.CAPTURED
    assert payment.provider == "MANUAL"
    assert payment.currency == "AED"
    assert payment.amount == Decimal("500.00")
    assert (booking.total_amount, booking.currency) == (Decimal("500.00"), "AED")
    assert payment.provider_ref == f"manual:capture:{payment.id}"
    assert booking.payment_ref == payment.provider_ref

    tasks = await container.ops_tasks.list_for_booking(session, booking.id)
    # plan: cleaning + inspection + restock; config forces linen on, restock off
    assert [t.type for t in tasks] == [OpsTaskType.CLEANING, OpsTaskType.INSPECTION, OpsTaskType.LINEN]
    assert {t.status.value for t in tasks} == {"PENDING"}
    assert all(t.due_at == datetime(2025, 6, 4, tzinfo=UTC) for t in tasks)


@pytest.mark.asyncio
async def test_property_without_service_config_gets_no_tasks(session, container):
    hold = await container.holds.create_hold(session, ReservationInterval("P2", date(2025, 6, 1), date(2025, 6, 2)))
    booking = await container.bookings.confirm(session, hold.id, PaymentIntent())
    assert booking.status == BookingStatus.CONFIRMED
    assert (booking.total_amount, booking.currency) == (Decimal("80.00"), "USD")
    assert await container.ops_tasks.list_for_booking(session, booking.id) == []


@pytest.mark.asyncio
async def test_confirm_expired_hold(session, container, clock):
    hold = await container.holds.create_hold(session, JUNE_1_4, 600)
    clock.advance(601)

    with pytest.raises(HoldExpiredError) as ei:
        await container.bookings.confirm(session, hold.id, PaymentIntent())
    assert ei.value.status == 410
    assert await count_rows(session, Booking) == 0


@pytest.mark.asyncio
async def test_confirm_twice_without_key(session, container):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    await container.bookings.confirm(session, hold.id, PaymentIntent())

    with pytest.raises(HoldAlreadyConsumedError):
        await container.bookings.confirm(session, hold.id, PaymentIntent())
    assert await count_rows(session, Booking) == 1


@pytest.mark.asyncio
async def test_confirm_released_hold(session, container):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    await container.holds.release_hold(session, hold.id)
    with pytest.raises(HoldAlreadyTerminalError) as ei:
        await container.bookings.confirm(session, hold.id, PaymentIntent())
    assert ei.value.code == "ALREADY_TERMINAL"


@pytest.mark.asyncio
async def test_confirm_unknown_hold_or_provider(session, container):
    with pytest.raises(NotFoundError):
        await container.bookings.confirm(session, "missing", PaymentIntent())

    hold = await container.holds.create_hold(session, JUNE_1_4)
    with pytest.raises(UnknownProviderError):
        await container.bookings.confirm(session, hold.id, PaymentIntent(provider="NOPE"))
    assert (await container.holds.get_hold(session, hold.id)).status == HoldStatus.ACTIVE


@pytest.mark.asyncio
async def test_idempotency_key_replays_first_booking(session, container, recording_gateway):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    intent = PaymentIntent(provider="RECORDING", idempotency_key="req-42")

    first = await container.bookings.confirm(session, hold.id, intent)
    second = await container.bookings.confirm(session, hold.id, intent)

    assert second.id == first.id
    assert await count_rows(session, Booking) == 1
    assert await count_rows(session, Payment) == 1
    assert len([c for c in recording_gateway.calls if c[0] == "authorize_and_capture"]) == 1


@pytest.mark.asyncio
async def test_declined_payment_keeps_hold_active(session, container):
    hold = await container.holds.create_hold(session, JUNE_1_4)

    with pytest.raises(PaymentFailedError) as ei:
        await container.bookings.confirm(session, hold.id, PaymentIntent(provider="DECLINE"))

    assert ei.value.status == 402
    assert ei.value.message == "card declined"
    assert (await container.holds.get_hold(session, hold.id)).status == HoldStatus.ACTIVE
    assert await claims_of(session, "P1", ClaimOwner.HOLD) == JUNE_1_4.nights()
    assert await count_rows(session, Booking) == 0
    assert await count_rows(session, Payment) == 0

    # retry with a working provider succeeds on the same hold
    booking = await container.bookings.confirm(session, hold.id, PaymentIntent())
    assert booking.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_cascade_failure_rolls_back_and_refunds(
    settings, clock, async_session_maker, recording_gateway
):
    c = build_container(
        settings,
        clock=clock,
        session_maker=async_session_maker,
        gateways=[recording_gateway],
        cascade=FailingCascade(clock),
    )
    async with async_session_maker() as session:
        hold = await c.holds.create_hold(session, JUNE_1_4)
        hold_id = hold.id

        with pytest.raises(RuntimeError):
            await c.bookings.confirm(session, hold_id, PaymentIntent(provider="RECORDING"))

    async with async_session_maker() as session:
        assert (await c.holds.get_hold(session, hold_id)).status == HoldStatus.ACTIVE
        assert await claims_of(session, "P1", ClaimOwner.HOLD) == JUNE_1_4.nights()
        assert await claims_of(session, "P1", ClaimOwner.BOOKING) == []
        assert await count_rows(session, Booking) == 0
        assert await count_rows(session, OpsTask) == 0

    charged_key = recording_gateway.calls[0][1]
    assert recording_gateway.refunds() == [("refund", charged_key, Decimal("500.00"))]


@pytest.mark.asyncio
async def test_listeners_run_after_commit_and_cannot_undo_it(settings, clock, async_session_maker):
    listener = RecordingListener(fail=True)
    c = build_container(settings, clock=clock, session_maker=async_session_maker, listeners=[listener])
    async with async_session_maker() as session:
        hold = await c.holds.create_hold(session, JUNE_1_4)
        booking = await c.bookings.confirm(session, hold.id, PaymentIntent())
        assert listener.seen == [f"confirmed:{booking.id}"]
        assert (await c.bookings.get(session, booking.id)).status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_payment_events_recorded(session, container):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    booking = await container.bookings.confirm(session, hold.id, PaymentIntent())
    payment = await container.bookings.get_payment(session, booking.id)

    events = (
        await session.execute(select(PaymentEvent).where(PaymentEvent.payment_id == payment.id))
    ).scalars().all()
    await session.commit()
    assert [(e.type.value, e.status.value) for e in events] == [("CAPTURE", "CAPTURED")]


@pytest.mark.asyncio
async def test_booked_nights_block_new_holds(session, container):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    booking = await container.bookings.confirm(session, hold.id, PaymentIntent())
    booking_id = booking.id

    with pytest.raises(HoldConflictError) as ei:
        await container.holds.create_hold(session, ReservationInterval("P1", date(2025, 6, 3), date(2025, 6, 5)))
    assert ei.value.context["conflicts"][0]["kind"] == "BOOKING"
    assert ei.value.context["conflicts"][0]["id"] == booking_id
    assert await count_rows(session, Hold) == 1


@pytest.mark.asyncio
async def test_confirm_charges_the_quote_when_no_amount_given(session, container, recording_gateway):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    booking = await container.bookings.confirm(session, hold.id, PaymentIntent(provider="RECORDING"))

    # 3 nights * 150.00 + 50.00 cleaning
    assert booking.total_amount == Decimal("500.00")
    assert booking.currency == "AED"
    assert recording_gateway.calls[0][0] == "authorize_and_capture"
    assert recording_gateway.calls[0][2] == Decimal("500.00")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "intent",
    [
        PaymentIntent(provider="RECORDING", amount=Decimal("1.00")),
        PaymentIntent(provider="RECORDING", amount=Decimal("500.00"), currency="USD"),
    ],
)
async def test_confirm_rejects_amount_or_currency_off_quote(session, container, recording_gateway, intent):
    hold = await container.holds.create_hold(session, JUNE_1_4)
    hold_id = hold.id

    with pytest.raises(PaymentAmountMismatchError) as ei:
        await container.bookings.confirm(session, hold_id, intent)

    assert ei.value.status == 422
    assert ei.value.code == "AMOUNT_MISMATCH"
    assert recording_gateway.calls == []
    assert (await container.holds.get_hold(session, hold_id)).status == HoldStatus.ACTIVE
    assert await count_rows(session, Booking) == 0


@pytest.mark.asyncio
async def test_idempotency_key_is_bound_to_its_hold(session, container, recording_gateway):
    first_hold = await container.holds.create_hold(session, JUNE_1_4)
    other_hold = await container.holds.create_hold(
        session, ReservationInterval("P1", date(2025, 6, 10), date(2025, 6, 12))
    )
    other_id = other_hold.id
    first = await container.bookings.confirm(
        session, first_hold.id, PaymentIntent(provider="RECORDING", idempotency_key="k")
    )
    first_id = first.id

    with pytest.raises(IdempotencyKeyReusedError) as ei:
        await container.bookings.confirm(session, other_id, PaymentIntent(provider="RECORDING", idempotency_key="k"))

    assert ei.value.status == 409
    assert ei.value.code == "IDEMPOTENCY_KEY_REUSED"
    assert ei.value.context["booking_id"] == first_id
    assert (await container.holds.get_hold(session, other_id)).status == HoldStatus.ACTIVE
    assert await count_rows(session, Booking) == 1
    # only the first hold was ever charged
    assert len([c for c in recording_gateway.calls if c[0] == "authorize_and_capture"]) == 1
