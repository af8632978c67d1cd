# staybook/container.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staybook.core.clock import Clock, SystemClock
from staybook.core.config import AppSettings, get_settings
from staybook.db.session import create_engine_for, make_session_maker
from staybook.domain.events import BookingHooks
from staybook.domain.ports import ServiceConfigLookup
from staybook.payments.base import PaymentGateway
from staybook.payments.manual import ManualPaymentGateway
from staybook.payments.registry import PaymentGatewayRegistry
from staybook.services.booking_state_machine import BookingStateMachine
from staybook.services.calendar_service import CalendarService
from staybook.services.cancellation_policy import CancellationPolicy
from staybook.services.hold_manager import HoldManager
from staybook.services.inventory_ledger import InventoryLedger
from staybook.services.ops_task_cascade import OpsTaskCascade
from staybook.services.ops_task_service import OpsTaskService
from staybook.services.service_config import SqlServiceConfigLookup


@dataclass
class Container:
    """Wired services for one process (API app, celery worker, CLI job)."""

    settings: AppSettings
    clock: Clock
    session_maker: async_sessionmaker[AsyncSession]
    ledger: InventoryLedger
    holds: HoldManager
    cascade: OpsTaskCascade
    gateways: PaymentGatewayRegistry
    bookings: BookingStateMachine
    ops_tasks: OpsTaskService
    calendar: CalendarService


def build_container(
    settings: Optional[AppSettings] = None,
    *,
    clock: Optional[Clock] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    gateways: Optional[Iterable[PaymentGateway]] = None,
    service_configs: Optional[ServiceConfigLookup] = None,
    cascade: Optional[OpsTaskCascade] = None,
    listeners: Sequence[BookingHooks] = (),
) -> Container:
    """
    Build the object graph. Every collaborator can be swapped (tests pass a
    manual clock, a temp-db session maker, fake gateways, a failing cascade).

    The MANUAL provider is always registered unless gateways replaces it.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    if session_maker is None:
        session_maker = make_session_maker(create_engine_for(settings.DATABASE_URL, echo=settings.SQL_ECHO))

    registry = PaymentGatewayRegistry([ManualPaymentGateway()])
    for gw in gateways or ():
        registry.register(gw)

    ledger = InventoryLedger()
    holds = HoldManager(ledger, settings, clock)
    cascade = cascade or OpsTaskCascade(clock)
    bookings = BookingStateMachine(
        holds=holds,
        ledger=ledger,
        gateways=registry,
        cascade=cascade,
        service_configs=service_configs or SqlServiceConfigLookup(),
        settings=settings,
        clock=clock,
        policy=CancellationPolicy.from_settings(settings),
        listeners=listeners,
    )
    return Container(
        settings=settings,
        clock=clock,
        session_maker=session_maker,
        ledger=ledger,
        holds=holds,
        cascade=cascade,
        gateways=registry,
        bookings=bookings,
        ops_tasks=OpsTaskService(clock),
        calendar=CalendarService(ledger, clock, default_currency=settings.DEFAULT_CURRENCY),
    )
