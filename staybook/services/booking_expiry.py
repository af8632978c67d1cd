# staybook/services/booking_expiry.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.errors import BookingAlreadyCancelledError
from staybook.core.tx import run_in_tx
from staybook.domain.enums import BookingStatus
from staybook.models.booking import Booking
from staybook.services.booking_state_machine import BookingStateMachine

logger = logging.getLogger("staybook.bookings")

PAYMENT_TIMEOUT = "PAYMENT_TIMEOUT"


async def find_lapsed_pending_payments(
    session: AsyncSession, *, now: datetime, limit: int = 100
) -> List[str]:
    async def _inner() -> List[str]:
        rows = await session.execute(
            select(Booking.id)
            .where(
                Booking.status == BookingStatus.PENDING_PAYMENT,
                Booking.payment_expires_at.is_not(None),
                Booking.payment_expires_at <= now,
            )
            .order_by(Booking.payment_expires_at, Booking.id)
            .limit(limit)
        )
        return list(rows.scalars())

    return await run_in_tx(session, _inner)


async def expire_pending_payments(
    session: AsyncSession,
    bookings: BookingStateMachine,
    *,
    now: datetime,
    batch_size: int = 100,
) -> int:
    """
    Cancel PENDING_PAYMENT bookings whose payment window has lapsed
    (reason PAYMENT_TIMEOUT), releasing their nights.

    A booking captured or cancelled meanwhile is skipped. Returns the number
    cancelled by this call.
    """
    total = 0
    while True:
        ids = await find_lapsed_pending_payments(session, now=now, limit=batch_size)
        if not ids:
            break
        cancelled_here = 0
        for booking_id in ids:
            try:
                await bookings.cancel(session, booking_id, PAYMENT_TIMEOUT)
            except BookingAlreadyCancelledError:
                logger.debug("pending payment %s already left PENDING_PAYMENT", booking_id)
                continue
            cancelled_here += 1
        total += cancelled_here
        if len(ids) < batch_size or cancelled_here == 0:
            break
    if total:
        logger.info("cancelled %d booking(s) with lapsed payment window", total)
    return total

