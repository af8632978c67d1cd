# staybook/jobs/payment_expiry.py
"""
Pending-payment expiry.

Cancels PENDING_PAYMENT bookings whose payment window has lapsed, with
reason PAYMENT_TIMEOUT, so their nights return to the calendar.

Usage:
    python -m staybook.jobs.payment_expiry
or periodically through celery beat (staybook.tasks.expire_pending_payments).
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from staybook.container import Container, build_container
from staybook.core.config import get_settings
from staybook.db.session import normalize_async_dsn
from staybook.metrics import SWEEPS
from staybook.services.booking_expiry import expire_pending_payments

logger = logging.getLogger("staybook.jobs.payment_expiry")


async def run(container: Container, *, batch_size: Optional[int] = None) -> int:
    batch_size = batch_size or container.settings.SWEEP_BATCH_SIZE
    async with container.session_maker() as session:
        cancelled = await expire_pending_payments(
            session, container.bookings, now=container.clock.now(), batch_size=batch_size
        )
    if cancelled:
        SWEEPS.labels("payment_expiry").inc(cancelled)
    logger.info("[PaymentExpiry] cancelled %d booking(s)", cancelled)
    return cancelled


async def main() -> int:
    settings = get_settings()
    engine = create_async_engine(normalize_async_dsn(settings.DATABASE_URL), poolclass=NullPool, future=True)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        return await run(build_container(settings, session_maker=maker))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    import asyncio

    from staybook.core.logging import setup_logging

    setup_logging(get_settings().LOG_LEVEL)
    asyncio.run(main())
