# staybook/api/routers/properties.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.api.deps import get_container, get_session, get_trace_id
from staybook.container import Container
from staybook.domain.intervals import ReservationInterval
from staybook.schemas.calendar import AvailabilityOut, BlockIn, BlockOut, ConflictOut, DayOut, QuoteOut

router = APIRouter(prefix="/properties", tags=["calendar"])


@router.get("/{property_id}/conflicts", response_model=List[ConflictOut])
async def list_conflicts(
    property_id: str,
    check_in: date = Query(...),
    check_out: date = Query(...),
    exclude_id: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
) -> List[ConflictOut]:
    interval = ReservationInterval(property_id, check_in, check_out)
    entries = await container.calendar.conflicts(session, interval, exclude_id=exclude_id)
    return [ConflictOut(**e.to_dict()) for e in entries]


@router.get("/{property_id}/availability", response_model=AvailabilityOut)
async def get_availability(
    property_id: str,
    date_from: date = Query(..., alias="from"),
    date_to: date = Query(..., alias="to"),
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
) -> AvailabilityOut:
    days = await container.calendar.availability(session, property_id, date_from, date_to)
    return AvailabilityOut(
        property_id=property_id,
        days=[DayOut(night=d.night, status=d.status, owner_id=d.owner_id) for d in days],
    )


@router.get("/{property_id}/quote", response_model=QuoteOut)
async def get_quote(
    property_id: str,
    check_in: date = Query(...),
    check_out: date = Query(...),
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
) -> QuoteOut:
    interval = ReservationInterval(property_id, check_in, check_out)
    q = await container.calendar.quote(session, interval)
    return QuoteOut(
        property_id=property_id,
        check_in=check_in,
        check_out=check_out,
        nights=q.nights,
        nightly_rate=q.nightly_rate,
        cleaning_fee=q.cleaning_fee,
        subtotal=q.subtotal,
        total=q.total,
        currency=q.currency,
    )


@router.post("/{property_id}/blocks", response_model=BlockOut)
async def block_nights(
    property_id: str,
    req: BlockIn,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> BlockOut:
    interval = ReservationInterval(property_id, req.check_in, req.check_out)
    nights = await container.calendar.block(session, interval, note=req.note, trace_id=trace_id)
    return BlockOut(property_id=property_id, nights=nights, count=len(nights))


@router.post("/{property_id}/blocks/release", response_model=BlockOut)
async def unblock_nights(
    property_id: str,
    req: BlockIn,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> BlockOut:
    interval = ReservationInterval(property_id, req.check_in, req.check_out)
    removed = await container.calendar.unblock(session, interval, trace_id=trace_id)
    return BlockOut(property_id=property_id, count=removed)
