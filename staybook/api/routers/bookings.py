# staybook/api/routers/bookings.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.api.deps import get_container, get_session, get_trace_id
from staybook.container import Container
from staybook.schemas.bookings import BookingOut, CancellationOut, CancelIn
from staybook.schemas.ops_tasks import OpsTaskOut

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: str,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
) -> BookingOut:
    return BookingOut.model_validate(await container.bookings.get(session, booking_id))


@router.post("/{booking_id}/cancel", response_model=CancellationOut)
async def cancel_booking(
    booking_id: str,
    req: Optional[CancelIn] = None,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> CancellationOut:
    """
    Cancel the booking; nights are freed and open ops tasks cancelled.

    A refund failure is reported in refund_status / refund_error with a 200:
    the cancellation itself has happened.
    """
    reason = req.reason if req is not None else None
    result = await container.bookings.cancel(session, booking_id, reason, trace_id=trace_id)
    return CancellationOut(
        booking=BookingOut.model_validate(result.booking),
        refund_status=result.refund_status,
        refund_amount=result.refund_amount,
        refund_ref=result.refund_ref,
        refund_error=result.refund_error,
    )


@router.post("/{booking_id}/capture", response_model=BookingOut)
async def capture_booking_payment(
    booking_id: str,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> BookingOut:
    booking = await container.bookings.capture_payment(session, booking_id, trace_id=trace_id)
    return BookingOut.model_validate(booking)


@router.get("/{booking_id}/ops-tasks", response_model=List[OpsTaskOut])
async def list_booking_ops_tasks(
    booking_id: str,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
) -> List[OpsTaskOut]:
    await container.bookings.get(session, booking_id)
    tasks = await container.ops_tasks.list_for_booking(session, booking_id)
    return [OpsTaskOut.model_validate(t) for t in tasks]
