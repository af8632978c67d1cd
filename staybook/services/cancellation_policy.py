# staybook/services/cancellation_policy.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

from staybook.core.clock import UTC, as_utc
from staybook.core.config import AppSettings
from staybook.core.errors import CancellationNotAllowedError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class RefundDecision:
    percent: int
    amount: Decimal
    hours_to_check_in: float


class CancellationPolicy:
    """
    Tiered refund:
      hours_to_check_in >= FREE_CANCEL_BEFORE_HOURS    → 100 %
      hours_to_check_in >= PARTIAL_REFUND_BEFORE_HOURS → PARTIAL_REFUND_PERCENT
      otherwise                                       → 0 %

    Check-in is taken as 00:00 UTC of the check-in date. With both thresholds
    at 0 any cancellation before check-in is fully refunded; after check-in
    there is nothing left to decide and CancellationNotAllowedError is raised.
    """

    def __init__(
        self,
        *,
        free_cancel_before_hours: int = 0,
        partial_refund_before_hours: int = 0,
        partial_refund_percent: int = 50,
    ) -> None:
        self.free_cancel_before_hours = free_cancel_before_hours
        self.partial_refund_before_hours = partial_refund_before_hours
        self.partial_refund_percent = partial_refund_percent

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "CancellationPolicy":
        return cls(
            free_cancel_before_hours=settings.FREE_CANCEL_BEFORE_HOURS,
            partial_refund_before_hours=settings.PARTIAL_REFUND_BEFORE_HOURS,
            partial_refund_percent=settings.PARTIAL_REFUND_PERCENT,
        )

    @staticmethod
    def hours_to_check_in(check_in: date, now: datetime) -> float:
        start = datetime.combine(check_in, time.min, tzinfo=UTC)
        return (start - as_utc(now)).total_seconds() / 3600.0

    def decide(self, *, check_in: date, now: datetime, amount: Decimal) -> RefundDecision:
        hours = self.hours_to_check_in(check_in, now)
        if hours < 0:
            raise CancellationNotAllowedError(
                "Cancellation is not allowed after check-in time.",
                context={"check_in": check_in.isoformat(), "hours_to_check_in": round(hours, 2)},
            )

        if hours >= self.free_cancel_before_hours:
            percent = 100
        elif hours >= self.partial_refund_before_hours:
            percent = self.partial_refund_percent
        else:
            percent = 0

        refund = (Decimal(amount) * Decimal(percent) / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
        return RefundDecision(percent=percent, amount=refund, hours_to_check_in=hours)
