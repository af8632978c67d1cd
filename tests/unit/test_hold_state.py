from datetime import datetime, timedelta, timezone

import pytest

from staybook.core.errors import HoldAlreadyConsumedError, HoldAlreadyTerminalError, HoldExpiredError
from staybook.domain.enums import HoldStatus
from staybook.domain.hold_state import effective_hold_status, not_active_error

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_active_until_expiry_instant():
    expires = NOW + timedelta(seconds=600)
    assert effective_hold_status(HoldStatus.ACTIVE, expires, NOW + timedelta(seconds=599)) == HoldStatus.ACTIVE
    assert effective_hold_status(HoldStatus.ACTIVE, expires, expires) == HoldStatus.EXPIRED
    assert effective_hold_status(HoldStatus.ACTIVE, expires, NOW + timedelta(seconds=601)) == HoldStatus.EXPIRED


def test_naive_datetimes_are_read_as_utc():
    naive_expiry = datetime(2025, 5, 1, 12, 10)
    assert effective_hold_status(HoldStatus.ACTIVE, naive_expiry, NOW) == HoldStatus.ACTIVE


@pytest.mark.parametrize("status", [HoldStatus.CONSUMED, HoldStatus.RELEASED, HoldStatus.EXPIRED])
def test_terminal_statuses_are_kept(status):
    long_gone = NOW - timedelta(days=1)
    assert effective_hold_status(status, long_gone, NOW) == status


@pytest.mark.parametrize(
    "status,exc_type,code,http",
    [
        (HoldStatus.EXPIRED, HoldExpiredError, "HOLD_EXPIRED", 410),
        (HoldStatus.CONSUMED, HoldAlreadyConsumedError, "HOLD_ALREADY_CONSUMED", 409),
        (HoldStatus.RELEASED, HoldAlreadyTerminalError, "ALREADY_TERMINAL", 409),
    ],
)
def test_not_active_error_mapping(status, exc_type, code, http):
    err = not_active_error("h1", status)
    assert type(err) is exc_type
    assert err.code == code
    assert err.status == http
    assert err.context == {"hold_id": "h1", "status": status.value}
