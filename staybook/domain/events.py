# staybook/domain/events.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from staybook.domain.ports import ServiceConfig, ServicePlanView

if TYPE_CHECKING:
    from staybook.models.booking import Booking


@dataclass(frozen=True)
class BookingConfirmed:
    booking: "Booking"
    service_config: Optional[ServiceConfig]
    service_plan: Optional[ServicePlanView]


@dataclass(frozen=True)
class BookingCancelled:
    booking: "Booking"
    reason: Optional[str] = None


class BookingHooks(Protocol):
    """
    Listener contract for booking transitions.

    The ops cascade is invoked inside the transition's transaction (session is
    live); any other listener runs after commit and may not fail the transition.
    """

    async def on_booking_confirmed(self, session: AsyncSession, event: BookingConfirmed) -> None: ...

    async def on_booking_cancelled(self, session: AsyncSession, event: BookingCancelled) -> None: ...
