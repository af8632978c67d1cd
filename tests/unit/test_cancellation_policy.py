from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from staybook.core.config import AppSettings
from staybook.core.errors import CancellationNotAllowedError
from staybook.services.cancellation_policy import CancellationPolicy

CHECK_IN = date(2025, 6, 10)


def at(day: int, hour: int = 0) -> datetime:
    return datetime(2025, 6, day, hour, tzinfo=timezone.utc)


def test_default_policy_refunds_everything_before_check_in():
    policy = CancellationPolicy.from_settings(AppSettings())
    d = policy.decide(check_in=CHECK_IN, now=at(9, 23), amount=Decimal("300.00"))
    assert d.percent == 100
    assert d.amount == Decimal("300.00")
    assert d.hours_to_check_in == pytest.approx(1.0)


def test_decide_refuses_after_check_in():
    policy = CancellationPolicy()
    with pytest.raises(CancellationNotAllowedError) as ei:
        policy.decide(check_in=CHECK_IN, now=at(10, 1), amount=Decimal("300.00"))
    assert ei.value.code == "CANCELLATION_NOT_ALLOWED"
    assert ei.value.context["hours_to_check_in"] == pytest.approx(-1.0)


def test_check_in_instant_itself_is_still_cancellable():
    d = CancellationPolicy().decide(check_in=CHECK_IN, now=at(10, 0), amount=Decimal("300.00"))
    assert d.percent == 100
    assert d.hours_to_check_in == 0


@pytest.mark.parametrize(
    "now,percent,amount",
    [
        (at(7, 0), 100, Decimal("199.99")),
        (at(8, 12), 50, Decimal("100.00")),
        (at(9, 12), 0, Decimal("0.00")),
    ],
)
def test_tiers(now, percent, amount):
    policy = CancellationPolicy(
        free_cancel_before_hours=72, partial_refund_before_hours=24, partial_refund_percent=50
    )
    d = policy.decide(check_in=CHECK_IN, now=now, amount=Decimal("199.99"))
    assert d.percent == percent
    assert d.amount == amount


def test_partial_amount_rounds_half_up_to_cents():
    policy = CancellationPolicy(free_cancel_before_hours=72, partial_refund_before_hours=0, partial_refund_percent=50)
    d = policy.decide(check_in=CHECK_IN, now=at(9), amount=Decimal("0.05"))
    assert d.amount == Decimal("0.03")
