# staybook/api/routers/holds.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.api.deps import get_container, get_session, get_trace_id
from staybook.container import Container
from staybook.domain.hold_state import effective_hold_status
from staybook.domain.intervals import ReservationInterval
from staybook.models.hold import Hold
from staybook.schemas.bookings import BookingOut, ConfirmIn
from staybook.schemas.holds import HoldCreateIn, HoldExtendIn, HoldOut
from staybook.services.booking_state_machine import PaymentIntent

router = APIRouter(prefix="/holds", tags=["holds"])


def _hold_out(hold: Hold, container: Container) -> HoldOut:
    """status is reported with lazy expiry applied."""
    out = HoldOut.model_validate(hold)
    out.status = effective_hold_status(hold.status, hold.expires_at, container.clock.now())
    return out


@router.post("", response_model=HoldOut, status_code=status.HTTP_201_CREATED)
async def create_hold(
    req: HoldCreateIn,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> HoldOut:
    """
    Hold [check_in, check_out) of a property.

    409 CONFLICT / DATES_BLOCKED when any night is already taken.
    """
    interval = ReservationInterval(req.property_id, req.check_in, req.check_out)
    hold = await container.holds.create_hold(session, interval, req.ttl_seconds, trace_id=trace_id)
    return _hold_out(hold, container)


@router.get("/{hold_id}", response_model=HoldOut)
async def get_hold(
    hold_id: str,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
) -> HoldOut:
    hold = await container.holds.get_hold(session, hold_id)
    return _hold_out(hold, container)


@router.post("/{hold_id}/release", response_model=HoldOut)
async def release_hold(
    hold_id: str,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> HoldOut:
    hold = await container.holds.release_hold(session, hold_id, trace_id=trace_id)
    return _hold_out(hold, container)


@router.post("/{hold_id}/extend", response_model=HoldOut)
async def extend_hold(
    hold_id: str,
    req: Optional[HoldExtendIn] = None,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> HoldOut:
    req = req or HoldExtendIn()
    hold = await container.holds.extend_hold(session, hold_id, req.ttl_seconds, trace_id=trace_id)
    return _hold_out(hold, container)


@router.post("/{hold_id}/confirm", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def confirm_hold(
    hold_id: str,
    req: Optional[ConfirmIn] = None,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> BookingOut:
    """
    Charge and convert the hold into a booking.

    410 HOLD_EXPIRED / 409 HOLD_ALREADY_CONSUMED point the client at a new
    hold; 402 PAYMENT_FAILED leaves the hold ACTIVE for a retry. An amount or
    currency that disagrees with the quote is 422 AMOUNT_MISMATCH; an
    idempotency key already spent on another hold is 409 IDEMPOTENCY_KEY_REUSED.
    """
    req = req or ConfirmIn()
    intent = PaymentIntent(
        provider=req.provider,
        amount=req.amount,
        currency=req.currency,
        idempotency_key=req.idempotency_key,
    )
    booking = await container.bookings.confirm(session, hold_id, intent, trace_id=trace_id)
    return BookingOut.model_validate(booking)
