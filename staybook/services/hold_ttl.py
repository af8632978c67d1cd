# staybook/services/hold_ttl.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.clock import SystemClock
from staybook.core.tx import run_in_tx
from staybook.domain.enums import HoldStatus
from staybook.models.hold import Hold
from staybook.services.inventory_ledger import InventoryLedger


async def find_expired_holds(session: AsyncSession, *, now: datetime, limit: int = 100) -> List[str]:
    """Candidate ids only; no locks taken."""
    rows = await session.execute(
        select(Hold.id)
        .where(Hold.status == HoldStatus.ACTIVE, Hold.expires_at <= now)
        .order_by(Hold.expires_at, Hold.id)
        .limit(limit)
    )
    return list(rows.scalars())


async def sweep_expired_holds(
    session: AsyncSession,
    *,
    now: Optional[datetime] = None,
    batch_size: int = 100,
    ledger: Optional[InventoryLedger] = None,
) -> int:
    """
    Persist ACTIVE → EXPIRED for every hold whose expires_at has passed and
    drop its night claims.

    Semantics:
      - only ACTIVE rows with expires_at <= now are touched;
      - each candidate goes through a conditional update, so a hold confirmed
        or released concurrently is left alone (NOOP);
      - CONSUMED / RELEASED rows are never rewritten.

    Returns the number of holds this call actually moved to EXPIRED; a second
    run with the same now returns 0.
    """
    if now is None:
        now = SystemClock().now()
    ledger = ledger or InventoryLedger()
    total_expired = 0

    async def _batch() -> Tuple[int, int]:
        ids = await find_expired_holds(session, now=now, limit=batch_size)
        moved = 0
        for hold_id in ids:
            if await ledger.expire_hold(session, hold_id, now=now):
                moved += 1
        return len(ids), moved

    while True:
        seen, moved = await run_in_tx(session, _batch)
        total_expired += moved
        # short batch: tail reached
        if seen < batch_size:
            break

    return total_expired
