# staybook/services/hold_manager.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.clock import Clock
from staybook.core.config import AppSettings
from staybook.core.errors import (
    DatesBlockedError,
    HoldAlreadyTerminalError,
    HoldConflictError,
    InvalidTtlError,
    NotFoundError,
)
from staybook.core.tx import advisory_xact_lock, run_in_tx
from staybook.domain.enums import ClaimOwner, HoldStatus
from staybook.domain.hold_state import effective_hold_status, not_active_error
from staybook.domain.intervals import ReservationInterval
from staybook.metrics import HOLDS
from staybook.models.hold import Hold
from staybook.models.property import Property
from staybook.services.audit_writer import AuditEventWriter
from staybook.services.inventory_ledger import InventoryLedger

logger = logging.getLogger("staybook.holds")


class HoldManager:
    """
    Time-bounded holds on a property's nights.

    A hold is created together with its night claims in one transaction; the
    claims are what make two overlapping ACTIVE holds impossible.
    """

    def __init__(self, ledger: InventoryLedger, settings: AppSettings, clock: Clock) -> None:
        self._ledger = ledger
        self._settings = settings
        self._clock = clock

    def _resolve_ttl(self, ttl_seconds: Optional[int]) -> int:
        s = self._settings
        ttl = s.HOLD_TTL_DEFAULT_SECONDS if ttl_seconds is None else int(ttl_seconds)
        if ttl < s.HOLD_TTL_MIN_SECONDS or ttl > s.HOLD_TTL_MAX_SECONDS:
            raise InvalidTtlError(
                f"ttl_seconds must be within [{s.HOLD_TTL_MIN_SECONDS}, {s.HOLD_TTL_MAX_SECONDS}]",
                context={"ttl_seconds": ttl},
            )
        return ttl

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------
    async def create_hold(
        self,
        session: AsyncSession,
        interval: ReservationInterval,
        ttl_seconds: Optional[int] = None,
        *,
        trace_id: Optional[str] = None,
    ) -> Hold:
        """
        Hold interval for ttl_seconds.

        Raises NotFoundError (unknown property), DatesBlockedError,
        HoldConflictError (overlap with a live hold / booking, or a lost
        race on the night claims), InvalidTtlError.
        """
        ttl = self._resolve_ttl(ttl_seconds)
        property_id = interval.property_id

        async def _inner() -> Hold:
            await advisory_xact_lock(session, f"property:{property_id}")

            if await session.get(Property, property_id) is None:
                raise NotFoundError(
                    f"Property {property_id} not found.", context={"property_id": property_id}
                )

            now = self._clock.now()
            purged = await self._ledger.purge_expired_holds(session, property_id, interval, now=now)
            if purged:
                logger.info("expired %d stale hold(s) on %s before claiming", len(purged), property_id)

            blocked = await self._ledger.blocked_nights(session, property_id, interval)
            if blocked:
                raise DatesBlockedError(
                    "Some of the requested nights are blocked by the host.",
                    context={"property_id": property_id, "nights": [d.isoformat() for d in blocked]},
                )

            conflicts = await self._ledger.query_conflicts(session, property_id, interval, now=now)
            if conflicts:
                raise HoldConflictError(
                    "Requested dates overlap an existing hold or booking.",
                    context={"property_id": property_id, "conflicts": [c.to_dict() for c in conflicts]},
                )

            hold = Hold(
                id=str(uuid4()),
                property_id=property_id,
                check_in=interval.check_in,
                check_out=interval.check_out,
                status=HoldStatus.ACTIVE,
                created_at=now,
                expires_at=now + timedelta(seconds=ttl),
            )
            session.add(hold)
            await session.flush()

            await self._ledger.claim(
                session,
                property_id=property_id,
                nights=interval.nights(),
                owner_kind=ClaimOwner.HOLD,
                owner_id=hold.id,
                at=now,
            )
            await AuditEventWriter.write(
                session,
                flow="HOLD",
                event="HOLD_CREATED",
                ref=hold.id,
                at=now,
                trace_id=trace_id,
                meta={
                    "property_id": property_id,
                    "check_in": interval.check_in.isoformat(),
                    "check_out": interval.check_out.isoformat(),
                    "ttl_seconds": ttl,
                },
            )
            return hold

        try:
            hold = await run_in_tx(session, _inner)
        except HoldConflictError:
            HOLDS.labels("conflict").inc()
            raise

        HOLDS.labels("created").inc()
        logger.info(
            "hold created id=%s property=%s [%s, %s) expires_at=%s",
            hold.id,
            property_id,
            interval.check_in,
            interval.check_out,
            hold.expires_at.isoformat(),
        )
        return hold

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def get_hold(self, session: AsyncSession, hold_id: str) -> Hold:
        async def _inner() -> Hold:
            hold = await session.get(Hold, hold_id, populate_existing=True)
            if hold is None:
                raise NotFoundError(f"Hold {hold_id} not found.", context={"hold_id": hold_id})
            return hold

        return await run_in_tx(session, _inner)

    async def get_hold_effective_status(self, session: AsyncSession, hold_id: str) -> HoldStatus:
        """Status with lazy expiry applied; nothing is written."""
        hold = await self.get_hold(session, hold_id)
        return effective_hold_status(hold.status, hold.expires_at, self._clock.now())

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------
    async def release_hold(
        self, session: AsyncSession, hold_id: str, *, trace_id: Optional[str] = None
    ) -> Hold:
        """
        ACTIVE (unexpired) → RELEASED, claims dropped.

        A second release, or a release of an expired / consumed hold, raises
        HoldAlreadyTerminalError and changes nothing.
        """

        async def _inner() -> Hold:
            now = self._clock.now()
            result = await session.execute(
                update(Hold)
                .where(
                    Hold.id == hold_id,
                    Hold.status == HoldStatus.ACTIVE,
                    Hold.expires_at > now,
                )
                .values(status=HoldStatus.RELEASED, released_at=now)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                hold = await self.get_hold(session, hold_id)
                effective = effective_hold_status(hold.status, hold.expires_at, now)
                raise HoldAlreadyTerminalError(
                    f"Hold is already {effective.value.lower()}.",
                    context={"hold_id": hold_id, "status": effective.value},
                )

            await self._ledger.release(session, owner_kind=ClaimOwner.HOLD, owner_id=hold_id)
            await AuditEventWriter.write(
                session, flow="HOLD", event="HOLD_RELEASED", ref=hold_id, at=now, trace_id=trace_id
            )
            return await self.get_hold(session, hold_id)

        hold = await run_in_tx(session, _inner)
        HOLDS.labels("released").inc()
        logger.info("hold released id=%s", hold_id)
        return hold

    async def extend_hold(
        self,
        session: AsyncSession,
        hold_id: str,
        ttl_seconds: Optional[int] = None,
        *,
        trace_id: Optional[str] = None,
    ) -> Hold:
        """Reset expires_at to now + ttl for a still-ACTIVE hold."""
        ttl = self._resolve_ttl(ttl_seconds)

        async def _inner() -> Hold:
            now = self._clock.now()
            hold = await self.get_hold(session, hold_id)
            effective = effective_hold_status(hold.status, hold.expires_at, now)
            if effective != HoldStatus.ACTIVE:
                raise not_active_error(hold_id, effective)

            conflicts = await self._ledger.query_conflicts(
                session, hold.property_id, hold.interval, now=now, exclude_id=hold_id
            )
            if conflicts:
                raise HoldConflictError(
                    "Held dates now overlap another hold or booking.",
                    context={"hold_id": hold_id, "conflicts": [c.to_dict() for c in conflicts]},
                )

            new_expiry = now + timedelta(seconds=ttl)
            result = await session.execute(
                update(Hold)
                .where(Hold.id == hold_id, Hold.status == HoldStatus.ACTIVE, Hold.expires_at > now)
                .values(expires_at=new_expiry)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                fresh = await self.get_hold(session, hold_id)
                raise not_active_error(
                    hold_id, effective_hold_status(fresh.status, fresh.expires_at, now)
                )

            await AuditEventWriter.write(
                session,
                flow="HOLD",
                event="HOLD_EXTENDED",
                ref=hold_id,
                at=now,
                trace_id=trace_id,
                meta={"expires_at": new_expiry.isoformat(), "ttl_seconds": ttl},
            )
            return await self.get_hold(session, hold_id)

        hold = await run_in_tx(session, _inner)
        HOLDS.labels("extended").inc()
        logger.info("hold extended id=%s expires_at=%s", hold_id, hold.expires_at.isoformat())
        return hold
