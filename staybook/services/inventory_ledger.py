# staybook/services/inventory_ledger.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.errors import HoldConflictError, InvalidIntervalError
from staybook.domain.enums import (
    LIVE_BOOKING_STATUSES,
    ClaimOwner,
    DayStatus,
    HoldStatus,
)
from staybook.domain.hold_state import effective_hold_status
from staybook.domain.intervals import ReservationInterval, nights_between
from staybook.models.booking import Booking
from staybook.models.hold import Hold
from staybook.models.night_claim import NightClaim

logger = logging.getLogger("staybook.ledger")

MAX_AVAILABILITY_DAYS = 370


@dataclass(frozen=True)
class ConflictingEntry:
    kind: str  # "HOLD" | "BOOKING"
    id: str
    interval: ReservationInterval
    status: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "kind": self.kind,
            "id": self.id,
            "check_in": self.interval.check_in.isoformat(),
            "check_out": self.interval.check_out.isoformat(),
            "status": self.status,
        }


@dataclass(frozen=True)
class DayAvailability:
    night: date
    status: DayStatus
    owner_id: Optional[str] = None


_CLAIM_TO_DAY = {
    ClaimOwner.HOLD: DayStatus.HELD,
    ClaimOwner.BOOKING: DayStatus.BOOKED,
    ClaimOwner.BLOCK: DayStatus.BLOCKED,
}


class InventoryLedger:
    """
    Per-property occupancy of nights.

    Two views of the same fact:
      - overlap queries over holds / bookings (query_conflicts), used for
        readable CONFLICT answers;
      - the night_claims index, one row per occupied night, whose unique
        (property_id, night) key makes a double claim impossible at commit.

    Every method works inside the caller's session / transaction.
    """

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def query_conflicts(
        self,
        session: AsyncSession,
        property_id: str,
        interval: ReservationInterval,
        *,
        now: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[ConflictingEntry]:
        """
        Unexpired ACTIVE holds and live (PENDING_PAYMENT / CONFIRMED) bookings
        of property_id overlapping interval, minus exclude_id.
        """
        out: List[ConflictingEntry] = []

        hold_stmt = select(Hold).where(
            Hold.property_id == property_id,
            Hold.status == HoldStatus.ACTIVE,
            Hold.expires_at > now,
            Hold.check_in < interval.check_out,
            Hold.check_out > interval.check_in,
        )
        if exclude_id is not None:
            hold_stmt = hold_stmt.where(Hold.id != exclude_id)
        for h in (await session.execute(hold_stmt)).scalars():
            out.append(ConflictingEntry("HOLD", h.id, h.interval, h.status.value))

        booking_stmt = select(Booking).where(
            Booking.property_id == property_id,
            Booking.status.in_(LIVE_BOOKING_STATUSES),
            Booking.check_in < interval.check_out,
            Booking.check_out > interval.check_in,
        )
        if exclude_id is not None:
            booking_stmt = booking_stmt.where(Booking.id != exclude_id)
        for b in (await session.execute(booking_stmt)).scalars():
            out.append(ConflictingEntry("BOOKING", b.id, b.interval, b.status.value))

        out.sort(key=lambda e: (e.interval.check_in, e.kind, e.id))
        return out

    async def blocked_nights(
        self, session: AsyncSession, property_id: str, interval: ReservationInterval
    ) -> List[date]:
        rows = await session.execute(
            select(NightClaim.night)
            .where(
                NightClaim.property_id == property_id,
                NightClaim.owner_kind == ClaimOwner.BLOCK,
                NightClaim.night >= interval.check_in,
                NightClaim.night < interval.check_out,
            )
            .order_by(NightClaim.night)
        )
        return list(rows.scalars())

    async def availability(
        self,
        session: AsyncSession,
        property_id: str,
        date_from: date,
        date_to: date,
        *,
        now: datetime,
    ) -> List[DayAvailability]:
        """
        Night-by-night calendar for [date_from, date_to).

        Claims of holds that have lazily expired read as AVAILABLE.
        """
        if date_from >= date_to:
            raise InvalidIntervalError(
                "from must be earlier than to",
                context={"from": date_from.isoformat(), "to": date_to.isoformat()},
            )
        if (date_to - date_from).days > MAX_AVAILABILITY_DAYS:
            raise InvalidIntervalError(
                f"range is limited to {MAX_AVAILABILITY_DAYS} days",
                context={"from": date_from.isoformat(), "to": date_to.isoformat()},
            )

        rows = await session.execute(
            select(NightClaim, Hold.status, Hold.expires_at)
            .outerjoin(
                Hold,
                and_(NightClaim.owner_kind == ClaimOwner.HOLD, Hold.id == NightClaim.owner_id),
            )
            .where(
                NightClaim.property_id == property_id,
                NightClaim.night >= date_from,
                NightClaim.night < date_to,
            )
        )

        by_night: Dict[date, DayAvailability] = {}
        for claim, hold_status, hold_expires_at in rows.all():
            if claim.owner_kind == ClaimOwner.HOLD:
                if hold_status is None:
                    continue
                if effective_hold_status(hold_status, hold_expires_at, now) != HoldStatus.ACTIVE:
                    continue
            by_night[claim.night] = DayAvailability(
                claim.night, _CLAIM_TO_DAY[claim.owner_kind], claim.owner_id
            )

        return [
            by_night.get(night, DayAvailability(night, DayStatus.AVAILABLE))
            for night in nights_between(date_from, date_to)
        ]

    # ------------------------------------------------------------------
    # claim index maintenance
    # ------------------------------------------------------------------
    async def claim(
        self,
        session: AsyncSession,
        *,
        property_id: str,
        nights: Iterable[date],
        owner_kind: ClaimOwner,
        owner_id: str,
        at: datetime,
        note: Optional[str] = None,
    ) -> None:
        """
        Insert one claim per night and flush, so a collision surfaces here as
        CONFLICT instead of at commit.
        """
        claimed = list(nights)
        for night in claimed:
            session.add(
                NightClaim(
                    property_id=property_id,
                    night=night,
                    owner_kind=owner_kind,
                    owner_id=owner_id,
                    note=note,
                    created_at=at,
                )
            )
        try:
            await session.flush()
        except IntegrityError as e:
            logger.info(
                "night claim collision property=%s owner=%s:%s", property_id, owner_kind.value, owner_id
            )
            raise HoldConflictError(
                "Requested nights are no longer available.",
                context={
                    "property_id": property_id,
                    "nights": [n.isoformat() for n in claimed],
                },
            ) from e

    async def transfer(
        self,
        session: AsyncSession,
        *,
        from_kind: ClaimOwner,
        from_id: str,
        to_kind: ClaimOwner,
        to_id: str,
    ) -> int:
        result = await session.execute(
            update(NightClaim)
            .where(NightClaim.owner_kind == from_kind, NightClaim.owner_id == from_id)
            .values(owner_kind=to_kind, owner_id=to_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def release(self, session: AsyncSession, *, owner_kind: ClaimOwner, owner_id: str) -> int:
        result = await session.execute(
            delete(NightClaim)
            .where(NightClaim.owner_kind == owner_kind, NightClaim.owner_id == owner_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def purge_expired_holds(
        self,
        session: AsyncSession,
        property_id: str,
        interval: ReservationInterval,
        *,
        now: datetime,
    ) -> List[str]:
        """
        Persist ACTIVE → EXPIRED for lapsed holds overlapping interval and drop
        their claims, freeing the nights for a new claim in this transaction.
        """
        ids = list(
            (
                await session.execute(
                    select(Hold.id).where(
                        Hold.property_id == property_id,
                        Hold.status == HoldStatus.ACTIVE,
                        Hold.expires_at <= now,
                        Hold.check_in < interval.check_out,
                        Hold.check_out > interval.check_in,
                    )
                )
            ).scalars()
        )
        expired: List[str] = []
        for hold_id in ids:
            if await self.expire_hold(session, hold_id, now=now):
                expired.append(hold_id)
        return expired

    async def expire_hold(self, session: AsyncSession, hold_id: str, *, now: datetime) -> bool:
        """
        Conditional ACTIVE → EXPIRED for one lapsed hold.

        Returns False when another path already moved it (NOOP).
        """
        result = await session.execute(
            update(Hold)
            .where(Hold.id == hold_id, Hold.status == HoldStatus.ACTIVE, Hold.expires_at <= now)
            .values(status=HoldStatus.EXPIRED, expired_at=now)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return False
        await self.release(session, owner_kind=ClaimOwner.HOLD, owner_id=hold_id)
        return True

    # ------------------------------------------------------------------
    # vendor calendar blocks
    # ------------------------------------------------------------------
    async def block_range(
        self,
        session: AsyncSession,
        interval: ReservationInterval,
        *,
        at: datetime,
        note: Optional[str] = None,
    ) -> List[date]:
        """
        Claim every night of interval as BLOCK.

        Nights already blocked are skipped; a night held or booked is a CONFLICT.
        Returns the nights newly blocked.
        """
        await self.purge_expired_holds(session, interval.property_id, interval, now=at)

        existing = await self._claims_in(session, interval.property_id, interval.nights())
        taken = sorted(n for n, c in existing.items() if c.owner_kind != ClaimOwner.BLOCK)
        if taken:
            raise HoldConflictError(
                "Some nights are held or booked and cannot be blocked.",
                context={
                    "property_id": interval.property_id,
                    "nights": [n.isoformat() for n in taken],
                },
            )

        fresh = [n for n in interval.nights() if n not in existing]
        if fresh:
            await self.claim(
                session,
                property_id=interval.property_id,
                nights=fresh,
                owner_kind=ClaimOwner.BLOCK,
                owner_id=interval.property_id,
                at=at,
                note=note,
            )
        return fresh

    async def unblock_range(self, session: AsyncSession, interval: ReservationInterval) -> int:
        result = await session.execute(
            delete(NightClaim)
            .where(
                NightClaim.property_id == interval.property_id,
                NightClaim.owner_kind == ClaimOwner.BLOCK,
                NightClaim.night >= interval.check_in,
                NightClaim.night < interval.check_out,
            )
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def _claims_in(
        self, session: AsyncSession, property_id: str, nights: Sequence[date]
    ) -> Dict[date, NightClaim]:
        if not nights:
            return {}
        rows = await session.execute(
            select(NightClaim).where(
                NightClaim.property_id == property_id,
                NightClaim.night.in_(list(nights)),
            )
        )
        return {c.night: c for c in rows.scalars()}
