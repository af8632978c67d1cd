# staybook/services/calendar_service.py
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.clock import Clock
from staybook.core.errors import NotFoundError
from staybook.core.tx import advisory_xact_lock, run_in_tx
from staybook.domain.intervals import ReservationInterval
from staybook.models.property import Property
from staybook.services.audit_writer import AuditEventWriter
from staybook.services.inventory_ledger import ConflictingEntry, DayAvailability, InventoryLedger
from staybook.services.pricing import Quote, quote_stay

logger = logging.getLogger("staybook.calendar")


class CalendarService:
    """Property calendar: conflicts, availability and host blocks."""

    def __init__(self, ledger: InventoryLedger, clock: Clock, *, default_currency: str = "AED") -> None:
        self._ledger = ledger
        self._clock = clock
        self._default_currency = default_currency

    async def _require_property(self, session: AsyncSession, property_id: str) -> None:
        if await session.get(Property, property_id) is None:
            raise NotFoundError(f"Property {property_id} not found.", context={"property_id": property_id})

    async def conflicts(
        self,
        session: AsyncSession,
        interval: ReservationInterval,
        *,
        exclude_id: Optional[str] = None,
    ) -> List[ConflictingEntry]:
        async def _inner() -> List[ConflictingEntry]:
            await self._require_property(session, interval.property_id)
            return await self._ledger.query_conflicts(
                session, interval.property_id, interval, now=self._clock.now(), exclude_id=exclude_id
            )

        return await run_in_tx(session, _inner)

    async def availability(
        self, session: AsyncSession, property_id: str, date_from: date, date_to: date
    ) -> List[DayAvailability]:
        async def _inner() -> List[DayAvailability]:
            await self._require_property(session, property_id)
            return await self._ledger.availability(
                session, property_id, date_from, date_to, now=self._clock.now()
            )

        return await run_in_tx(session, _inner)

    async def quote(self, session: AsyncSession, interval: ReservationInterval) -> Quote:
        async def _inner() -> Quote:
            return await quote_stay(session, interval, default_currency=self._default_currency)

        return await run_in_tx(session, _inner)

    async def block(
        self,
        session: AsyncSession,
        interval: ReservationInterval,
        *,
        note: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> List[date]:
        async def _inner() -> List[date]:
            await advisory_xact_lock(session, f"property:{interval.property_id}")
            await self._require_property(session, interval.property_id)
            now = self._clock.now()
            fresh = await self._ledger.block_range(session, interval, at=now, note=note)
            if fresh:
                await AuditEventWriter.write(
                    session,
                    flow="CALENDAR",
                    event="NIGHTS_BLOCKED",
                    ref=interval.property_id,
                    at=now,
                    trace_id=trace_id,
                    meta={"nights": [d.isoformat() for d in fresh], "note": note},
                )
            return fresh

        fresh = await run_in_tx(session, _inner)
        logger.info("blocked %d night(s) on %s", len(fresh), interval.property_id)
        return fresh

    async def unblock(
        self, session: AsyncSession, interval: ReservationInterval, *, trace_id: Optional[str] = None
    ) -> int:
        async def _inner() -> int:
            await self._require_property(session, interval.property_id)
            now = self._clock.now()
            removed = await self._ledger.unblock_range(session, interval)
            if removed:
                await AuditEventWriter.write(
                    session,
                    flow="CALENDAR",
                    event="NIGHTS_UNBLOCKED",
                    ref=interval.property_id,
                    at=now,
                    trace_id=trace_id,
                    meta={
                        "check_in": interval.check_in.isoformat(),
                        "check_out": interval.check_out.isoformat(),
                        "count": removed,
                    },
                )
            return removed

        removed = await run_in_tx(session, _inner)
        logger.info("unblocked %d night(s) on %s", removed, interval.property_id)
        return removed
