# staybook/services/booking_state_machine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Sequence, Tuple
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.clock import Clock
from staybook.core.config import AppSettings
from staybook.core.errors import (
    BookingAlreadyCancelledError,
    CancellationNotAllowedError,
    IdempotencyKeyReusedError,
    NotFoundError,
    PaymentFailedError,
    UnknownProviderError,
)
from staybook.core.tx import run_in_tx
from staybook.domain.enums import (
    LIVE_BOOKING_STATUSES,
    BookingStatus,
    ClaimOwner,
    HoldStatus,
    PaymentEventType,
    PaymentStatus,
)
from staybook.domain.events import BookingCancelled, BookingConfirmed, BookingHooks
from staybook.domain.hold_state import effective_hold_status, not_active_error
from staybook.domain.ports import ServiceConfigLookup
from staybook.metrics import BOOKINGS, PAYMENTS
from staybook.models.booking import Booking
from staybook.models.hold import Hold
from staybook.models.payment import Payment, PaymentEvent
from staybook.payments.base import PaymentGateway, PaymentProviderError, ProviderResult
from staybook.payments.manual import MANUAL
from staybook.payments.registry import PaymentGatewayRegistry
from staybook.services.audit_writer import AuditEventWriter
from staybook.services.cancellation_policy import CancellationPolicy, RefundDecision
from staybook.services.hold_manager import HoldManager
from staybook.services.inventory_ledger import InventoryLedger
from staybook.services.ops_task_cascade import OpsTaskCascade
from staybook.services.pricing import Quote, quote_stay

logger = logging.getLogger("staybook.bookings")


@dataclass(frozen=True)
class PaymentIntent:
    provider: str = MANUAL
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class CancellationResult:
    """
    Outcome of a cancellation. The booking is CANCELLED whatever the refund did:
      refund_status None     → nothing to refund
      refund_status REFUNDED → refund_ref set
      refund_status FAILED   → refund_error set, payment still CAPTURED
    """

    booking: Booking
    refund_status: Optional[PaymentStatus] = None
    refund_amount: Decimal = Decimal("0.00")
    refund_ref: Optional[str] = None
    refund_error: Optional[str] = None


class BookingStateMachine:
    """
    Booking lifecycle:

        PENDING_PAYMENT → CONFIRMED
        PENDING_PAYMENT → CANCELLED
        CONFIRMED       → CANCELLED

    Provider calls never run inside a database transaction. A charge whose
    transaction then fails is compensated with a refund, so the caller sees
    either a committed booking or an unchanged world.
    """

    def __init__(
        self,
        *,
        holds: HoldManager,
        ledger: InventoryLedger,
        gateways: PaymentGatewayRegistry,
        cascade: OpsTaskCascade,
        service_configs: ServiceConfigLookup,
        settings: AppSettings,
        clock: Clock,
        policy: Optional[CancellationPolicy] = None,
        listeners: Sequence[BookingHooks] = (),
    ) -> None:
        self._holds = holds
        self._ledger = ledger
        self._gateways = gateways
        self._cascade = cascade
        self._configs = service_configs
        self._settings = settings
        self._clock = clock
        self._policy = policy or CancellationPolicy.from_settings(settings)
        self._listeners = tuple(listeners)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def get(self, session: AsyncSession, booking_id: str) -> Booking:
        async def _inner() -> Booking:
            booking = await session.get(Booking, booking_id, populate_existing=True)
            if booking is None:
                raise NotFoundError(f"Booking {booking_id} not found.", context={"booking_id": booking_id})
            return booking

        return await run_in_tx(session, _inner)

    async def get_payment(self, session: AsyncSession, booking_id: str) -> Optional[Payment]:
        async def _inner() -> Optional[Payment]:
            return (
                await session.execute(
                    select(Payment)
                    .where(Payment.booking_id == booking_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()

        return await run_in_tx(session, _inner)

    async def _by_idempotency_key(self, session: AsyncSession, key: str, hold_id: str) -> Optional[Booking]:
        """Booking created under `key`; the key is bound to the hold it first confirmed."""
        existing = (
            await session.execute(select(Booking).where(Booking.idempotency_key == key))
        ).scalar_one_or_none()
        if existing is not None and existing.hold_id != hold_id:
            raise IdempotencyKeyReusedError(
                "Idempotency key was already used for another hold.",
                context={"idempotency_key": key, "hold_id": hold_id, "booking_id": existing.id},
            )
        return existing

    # ------------------------------------------------------------------
    # confirm
    # ------------------------------------------------------------------
    async def confirm(
        self,
        session: AsyncSession,
        hold_id: str,
        intent: PaymentIntent,
        *,
        trace_id: Optional[str] = None,
    ) -> Booking:
        """
        Turn an ACTIVE hold into a booking, charging the quoted total.

        Raises NotFoundError, HoldExpiredError, HoldAlreadyConsumedError,
        HoldAlreadyTerminalError (released), PaymentAmountMismatchError,
        IdempotencyKeyReusedError, PaymentFailedError, UnknownProviderError.
        On PaymentFailedError the hold stays ACTIVE.
        """
        gateway = self._gateways.get(intent.provider)

        # 1) idempotent replay, then fast fail; no writes
        if intent.idempotency_key:

            async def _replay() -> Optional[Booking]:
                return await self._by_idempotency_key(session, intent.idempotency_key, hold_id)

            existing = await run_in_tx(session, _replay)
            if existing is not None:
                logger.info("confirm reused booking=%s for idempotency key", existing.id)
                return existing

        async def _precheck() -> Tuple[Hold, Quote]:
            hold = await self._holds.get_hold(session, hold_id)
            effective = effective_hold_status(hold.status, hold.expires_at, self._clock.now())
            if effective != HoldStatus.ACTIVE:
                raise not_active_error(hold_id, effective)
            quote = await quote_stay(session, hold.interval, default_currency=self._settings.DEFAULT_CURRENCY)
            quote.check(intent.amount, intent.currency)
            return hold, quote

        hold, quote = await run_in_tx(session, _precheck)
        property_id, check_in, check_out = hold.property_id, hold.check_in, hold.check_out
        amount, currency = quote.total, quote.currency

        # 2) charge, outside any transaction
        payment_id = str(uuid4())
        booking_id = str(uuid4())
        result = await self._charge(gateway, payment_id=payment_id, hold_id=hold_id, amount=amount, currency=currency)

        # 3) commit the transition
        reused: Optional[Booking] = None
        confirmed_event: Optional[BookingConfirmed] = None

        async def _commit() -> Booking:
            nonlocal reused, confirmed_event
            now = self._clock.now()
            consumed = await session.execute(
                update(Hold)
                .where(
                    Hold.id == hold_id,
                    Hold.status == HoldStatus.ACTIVE,
                    Hold.expires_at > now,
                )
                .values(status=HoldStatus.CONSUMED, consumed_at=now, booking_id=booking_id)
                .execution_options(synchronize_session=False)
            )
            if not consumed.rowcount:
                if intent.idempotency_key:
                    reused = await self._by_idempotency_key(session, intent.idempotency_key, hold_id)
                    if reused is not None:
                        return reused
                fresh = await self._holds.get_hold(session, hold_id)
                raise not_active_error(hold_id, effective_hold_status(fresh.status, fresh.expires_at, now))

            captured = result.terminal and result.status == PaymentStatus.CAPTURED
            booking = Booking(
                id=booking_id,
                property_id=property_id,
                check_in=check_in,
                check_out=check_out,
                hold_id=hold_id,
                status=BookingStatus.CONFIRMED if captured else BookingStatus.PENDING_PAYMENT,
                payment_ref=result.provider_ref,
                idempotency_key=intent.idempotency_key,
                total_amount=amount,
                currency=currency,
                created_at=now,
                updated_at=now,
                confirmed_at=now if captured else None,
                payment_expires_at=(
                    None if captured else now + timedelta(seconds=self._settings.PAYMENT_WINDOW_SECONDS)
                ),
            )
            session.add(booking)
            await session.flush()

            await self._ledger.transfer(
                session,
                from_kind=ClaimOwner.HOLD,
                from_id=hold_id,
                to_kind=ClaimOwner.BOOKING,
                to_id=booking_id,
            )

            session.add(
                Payment(
                    id=payment_id,
                    booking_id=booking_id,
                    provider=gateway.provider,
                    provider_ref=result.provider_ref,
                    status=result.status,
                    amount=amount,
                    currency=currency,
                    created_at=now,
                    updated_at=now,
                )
            )
            await session.flush()
            session.add(
                PaymentEvent(
                    payment_id=payment_id,
                    type=PaymentEventType.CAPTURE if captured else PaymentEventType.AUTHORIZE,
                    provider_ref=result.provider_ref,
                    status=result.status,
                    message=result.message,
                    created_at=now,
                )
            )

            if captured:
                confirmed_event = await self._confirmed_event(session, booking)
                await self._cascade.on_booking_confirmed(session, confirmed_event)

            await AuditEventWriter.write(
                session,
                flow="BOOKING",
                event="BOOKING_CONFIRMED" if captured else "BOOKING_PENDING_PAYMENT",
                ref=booking_id,
                at=now,
                trace_id=trace_id,
                meta={
                    "hold_id": hold_id,
                    "property_id": property_id,
                    "payment_id": payment_id,
                    "provider": gateway.provider,
                    "amount": str(amount),
                    "currency": currency,
                },
            )
            await session.flush()
            return booking

        try:
            booking = await run_in_tx(session, _commit)
        except Exception as e:
            BOOKINGS.labels("confirm_aborted").inc()
            await self._compensate(gateway, payment_id=payment_id, charge=result, amount=amount, currency=currency)
            if isinstance(e, IntegrityError) and intent.idempotency_key and not session.in_transaction():
                # a concurrent confirm on another hold took the key first
                async def _taken() -> Optional[Booking]:
                    return await self._by_idempotency_key(session, intent.idempotency_key, hold_id)

                await run_in_tx(session, _taken)
            raise

        if reused is not None:
            # idempotent replay that raced the first request: the second charge is undone
            await self._compensate(gateway, payment_id=payment_id, charge=result, amount=amount, currency=currency)
            logger.info("confirm reused booking=%s after race", reused.id)
            return reused

        BOOKINGS.labels(booking.status.value.lower()).inc()
        logger.info(
            "booking %s id=%s hold=%s property=%s", booking.status.value, booking.id, hold_id, booking.property_id
        )
        if confirmed_event is not None:
            await self._notify(session, "on_booking_confirmed", confirmed_event)
        return booking

    async def capture_payment(
        self, session: AsyncSession, booking_id: str, *, trace_id: Optional[str] = None
    ) -> Booking:
        """
        PENDING_PAYMENT → CONFIRMED after a successful provider capture.

        Capturing an already CONFIRMED booking returns it unchanged.
        """

        async def _precheck() -> Tuple[Booking, Optional[Payment]]:
            booking = await self.get(session, booking_id)
            return booking, await self.get_payment(session, booking_id)

        booking, payment = await run_in_tx(session, _precheck)
        if booking.status == BookingStatus.CONFIRMED:
            return booking
        if booking.status == BookingStatus.CANCELLED:
            raise BookingAlreadyCancelledError(
                "Booking is cancelled.", context={"booking_id": booking_id, "status": booking.status.value}
            )
        if payment is None:
            raise NotFoundError("Booking has no payment.", context={"booking_id": booking_id})
        if booking.payment_expires_at is not None and self._clock.now() >= booking.payment_expires_at:
            raise PaymentFailedError(
                "Payment window has lapsed.",
                context={"booking_id": booking_id, "payment_expires_at": booking.payment_expires_at.isoformat()},
            )

        gateway = self._gateways.get(payment.provider)
        try:
            result = await gateway.capture(
                key=payment.id,
                provider_ref=payment.provider_ref or "",
                amount=payment.amount,
                currency=payment.currency,
            )
        except PaymentProviderError as e:
            PAYMENTS.labels(gateway.provider, "capture", "ERROR").inc()
            raise PaymentFailedError(
                str(e) or "Payment provider error.", context={"booking_id": booking_id}
            ) from e
        PAYMENTS.labels(gateway.provider, "capture", result.status.value).inc()
        if result.status != PaymentStatus.CAPTURED:
            raise PaymentFailedError(
                result.message or "Capture was declined.",
                context={"booking_id": booking_id, "provider_status": result.status.value},
            )

        async def _commit() -> Tuple[Booking, BookingConfirmed]:
            now = self._clock.now()
            confirmed = await session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING_PAYMENT)
                .values(
                    status=BookingStatus.CONFIRMED,
                    confirmed_at=now,
                    updated_at=now,
                    payment_ref=result.provider_ref,
                    payment_expires_at=None,
                )
                .execution_options(synchronize_session=False)
            )
            if not confirmed.rowcount:
                raise BookingAlreadyCancelledError(
                    "Booking was cancelled before the capture completed.", context={"booking_id": booking_id}
                )
            fresh = await self.get(session, booking_id)

            payment.status = PaymentStatus.CAPTURED
            payment.provider_ref = result.provider_ref
            payment.updated_at = now
            session.add(
                PaymentEvent(
                    payment_id=payment.id,
                    type=PaymentEventType.CAPTURE,
                    provider_ref=result.provider_ref,
                    status=result.status,
                    message=result.message,
                    created_at=now,
                )
            )
            event = await self._confirmed_event(session, fresh)
            await self._cascade.on_booking_confirmed(session, event)
            await AuditEventWriter.write(
                session,
                flow="BOOKING",
                event="BOOKING_CONFIRMED",
                ref=booking_id,
                at=now,
                trace_id=trace_id,
                meta={"payment_id": payment.id, "via": "capture"},
            )
            await session.flush()
            return fresh, event

        # rollback expires ORM state; keep plain values for compensation
        payment_id, amount, currency = payment.id, payment.amount, payment.currency
        try:
            booking, event = await run_in_tx(session, _commit)
        except Exception:
            await self._compensate(gateway, payment_id=payment_id, charge=result, amount=amount, currency=currency)
            raise

        BOOKINGS.labels("confirmed").inc()
        logger.info("booking CONFIRMED id=%s via capture", booking_id)
        await self._notify(session, "on_booking_confirmed", event)
        return booking

    # ------------------------------------------------------------------
    # cancel
    # ------------------------------------------------------------------
    async def cancel(
        self,
        session: AsyncSession,
        booking_id: str,
        reason: Optional[str] = None,
        *,
        trace_id: Optional[str] = None,
    ) -> CancellationResult:
        """
        PENDING_PAYMENT / CONFIRMED → CANCELLED.

        A CONFIRMED booking whose check-in has passed raises
        CancellationNotAllowedError.
        Claims are released and open ops tasks cancelled in the same
        transaction; the refund runs after commit and its failure is reported
        on the result, never raised.
        """

        async def _inner() -> Tuple[Booking, Optional[Payment], Optional[RefundDecision]]:
            now = self._clock.now()
            current = await self.get(session, booking_id)
            # once the stay has begun only an unpaid booking may still be dropped
            allowed = LIVE_BOOKING_STATUSES
            if self._policy.hours_to_check_in(current.check_in, now) < 0:
                allowed = (BookingStatus.PENDING_PAYMENT,)
            cancelled = await session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status.in_(allowed))
                .values(
                    status=BookingStatus.CANCELLED,
                    cancelled_at=now,
                    updated_at=now,
                    cancel_reason=reason,
                )
                .execution_options(synchronize_session=False)
            )
            if not cancelled.rowcount:
                fresh = await self.get(session, booking_id)
                if fresh.status == BookingStatus.CANCELLED:
                    raise BookingAlreadyCancelledError(
                        "Booking is already cancelled.",
                        context={"booking_id": booking_id, "status": fresh.status.value},
                    )
                raise CancellationNotAllowedError(
                    "Cancellation is not allowed after check-in time.",
                    context={
                        "booking_id": booking_id,
                        "status": fresh.status.value,
                        "check_in": fresh.check_in.isoformat(),
                    },
                )
            booking = await self.get(session, booking_id)

            released = await self._ledger.release(session, owner_kind=ClaimOwner.BOOKING, owner_id=booking_id)

            payment = await self.get_payment(session, booking_id)
            decision: Optional[RefundDecision] = None
            if payment is not None and payment.status == PaymentStatus.CAPTURED:
                decision = self._policy.decide(check_in=booking.check_in, now=now, amount=payment.amount)

            await self._cascade.on_booking_cancelled(session, BookingCancelled(booking, reason))
            await AuditEventWriter.write(
                session,
                flow="BOOKING",
                event="BOOKING_CANCELLED",
                ref=booking_id,
                at=now,
                trace_id=trace_id,
                meta={
                    "reason": reason,
                    "previous_status": current.status.value,
                    "nights_released": released,
                    "refund_percent": decision.percent if decision else None,
                },
            )
            return booking, payment, decision

        booking, payment, decision = await run_in_tx(session, _inner)
        BOOKINGS.labels("cancelled").inc()
        logger.info("booking CANCELLED id=%s reason=%s", booking_id, reason)

        result = CancellationResult(booking=booking)
        if payment is not None and decision is not None and decision.amount > 0:
            result = await self._refund(session, booking, payment, decision.amount, trace_id=trace_id)

        await self._notify(session, "on_booking_cancelled", BookingCancelled(booking, reason))
        return result

    # ------------------------------------------------------------------
    # provider helpers
    # ------------------------------------------------------------------
    async def _charge(
        self,
        gateway: PaymentGateway,
        *,
        payment_id: str,
        hold_id: str,
        amount: Decimal,
        currency: str,
    ) -> ProviderResult:
        try:
            result = await gateway.authorize_and_capture(key=payment_id, amount=amount, currency=currency)
        except PaymentProviderError as e:
            PAYMENTS.labels(gateway.provider, "authorize_and_capture", "ERROR").inc()
            logger.warning("payment provider error hold=%s provider=%s: %s", hold_id, gateway.provider, e)
            raise PaymentFailedError(
                str(e) or "Payment provider error.",
                context={"hold_id": hold_id, "provider": gateway.provider},
            ) from e

        PAYMENTS.labels(gateway.provider, "authorize_and_capture", result.status.value).inc()
        if result.status == PaymentStatus.FAILED:
            logger.info("payment declined hold=%s provider=%s", hold_id, gateway.provider)
            raise PaymentFailedError(
                result.message or "Payment was declined.",
                context={"hold_id": hold_id, "provider": gateway.provider},
            )
        return result

    async def _compensate(
        self,
        gateway: PaymentGateway,
        *,
        payment_id: str,
        charge: ProviderResult,
        amount: Decimal,
        currency: str,
    ) -> None:
        """Undo a captured charge whose booking did not commit."""
        if charge.status != PaymentStatus.CAPTURED:
            return
        try:
            refund = await gateway.refund(
                key=payment_id, provider_ref=charge.provider_ref, amount=amount, currency=currency
            )
        except PaymentProviderError:
            PAYMENTS.labels(gateway.provider, "refund", "ERROR").inc()
            logger.exception("compensating refund failed payment=%s ref=%s", payment_id, charge.provider_ref)
            return
        PAYMENTS.labels(gateway.provider, "refund", refund.status.value).inc()
        logger.warning("compensating refund payment=%s ref=%s status=%s", payment_id, refund.provider_ref, refund.status.value)

    async def _refund(
        self,
        session: AsyncSession,
        booking: Booking,
        payment: Payment,
        amount: Decimal,
        *,
        trace_id: Optional[str],
    ) -> CancellationResult:
        error: Optional[str] = None
        result: Optional[ProviderResult] = None
        try:
            gateway = self._gateways.get(payment.provider)
            result = await gateway.refund(
                key=payment.id, provider_ref=payment.provider_ref, amount=amount, currency=payment.currency
            )
            PAYMENTS.labels(gateway.provider, "refund", result.status.value).inc()
            if result.status == PaymentStatus.FAILED:
                error = result.message or "Refund was declined."
        except (PaymentProviderError, UnknownProviderError) as e:
            PAYMENTS.labels(payment.provider, "refund", "ERROR").inc()
            error = str(e) or e.__class__.__name__

        async def _persist() -> None:
            now = self._clock.now()
            if error is None:
                payment.status = PaymentStatus.REFUNDED
                payment.refund_ref = result.provider_ref
                payment.refunded_amount = amount
                payment.updated_at = now
            session.add(
                PaymentEvent(
                    payment_id=payment.id,
                    type=PaymentEventType.REFUND,
                    provider_ref=result.provider_ref if result is not None else None,
                    status=PaymentStatus.REFUNDED if error is None else PaymentStatus.FAILED,
                    message=error,
                    created_at=now,
                )
            )
            await AuditEventWriter.write(
                session,
                flow="PAYMENT",
                event="REFUNDED" if error is None else "REFUND_FAILED",
                ref=booking.id,
                at=now,
                trace_id=trace_id,
                meta={"payment_id": payment.id, "amount": str(amount), "error": error},
            )
            await session.flush()

        await run_in_tx(session, _persist)

        if error is not None:
            logger.warning("refund failed booking=%s payment=%s: %s", booking.id, payment.id, error)
            return CancellationResult(
                booking=booking,
                refund_status=PaymentStatus.FAILED,
                refund_amount=amount,
                refund_error=error,
            )
        logger.info("refunded booking=%s payment=%s amount=%s", booking.id, payment.id, amount)
        return CancellationResult(
            booking=booking,
            refund_status=PaymentStatus.REFUNDED,
            refund_amount=amount,
            refund_ref=result.provider_ref,
        )

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------
    async def _confirmed_event(self, session: AsyncSession, booking: Booking) -> BookingConfirmed:
        config = await self._configs.get_service_config(session, booking.property_id)
        return BookingConfirmed(
            booking=booking,
            service_config=config,
            service_plan=config.plan if config is not None else None,
        )

    async def _notify(self, session: AsyncSession, hook: str, event) -> None:
        """Post-commit listeners: failures are logged, never raised."""
        for listener in self._listeners:
            try:
                await getattr(listener, hook)(session, event)
            except Exception:
                logger.exception("booking listener %r failed in %s", listener, hook)
