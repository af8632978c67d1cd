# staybook/jobs/hold_ttl.py
"""
Hold TTL sweep.

Moves ACTIVE holds past expires_at to EXPIRED and frees their nights.
Reads stay correct without it (expiry is lazy); the sweep keeps the table
and the night-claim index tidy.

Usage:
    python -m staybook.jobs.hold_ttl
or periodically through celery beat (staybook.tasks.sweep_expired_holds).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from staybook.core.clock import Clock, SystemClock
from staybook.core.config import get_settings
from staybook.db.session import normalize_async_dsn
from staybook.metrics import SWEEPS
from staybook.services.hold_ttl import sweep_expired_holds

logger = logging.getLogger("staybook.jobs.hold_ttl")


async def run(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    clock: Optional[Clock] = None,
    now: Optional[datetime] = None,
    batch_size: int = 100,
) -> int:
    now = now or (clock or SystemClock()).now()
    async with session_maker() as session:
        expired = await sweep_expired_holds(session, now=now, batch_size=batch_size)
    if expired:
        SWEEPS.labels("hold_ttl").inc(expired)
    logger.info("[HoldTTL] expired %d hold(s) (batch_size=%d)", expired, batch_size)
    return expired


async def main() -> int:
    settings = get_settings()
    engine = create_async_engine(normalize_async_dsn(settings.DATABASE_URL), poolclass=NullPool, future=True)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        return await run(maker, batch_size=settings.SWEEP_BATCH_SIZE)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    import asyncio

    from staybook.core.logging import setup_logging

    setup_logging(get_settings().LOG_LEVEL)
    asyncio.run(main())
