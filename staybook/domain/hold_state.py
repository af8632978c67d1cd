# staybook/domain/hold_state.py
from __future__ import annotations

from datetime import datetime

from staybook.core.clock import as_utc
from staybook.core.errors import (
    BizError,
    HoldAlreadyConsumedError,
    HoldAlreadyTerminalError,
    HoldExpiredError,
)
from staybook.domain.enums import HoldStatus


def effective_hold_status(status: HoldStatus, expires_at: datetime, now: datetime) -> HoldStatus:
    """
    Lazy expiry: an ACTIVE hold whose expires_at has been reached reads as EXPIRED,
    whether or not the sweep has persisted it yet.
    """
    if status == HoldStatus.ACTIVE and as_utc(now) >= as_utc(expires_at):
        return HoldStatus.EXPIRED
    return status


def not_active_error(hold_id: str, effective: HoldStatus) -> BizError:
    """Error for a transition attempted on a hold that is no longer ACTIVE."""
    ctx = {"hold_id": hold_id, "status": effective.value}
    if effective == HoldStatus.EXPIRED:
        return HoldExpiredError("Hold has expired.", context=ctx)
    if effective == HoldStatus.CONSUMED:
        return HoldAlreadyConsumedError("Hold was already converted to a booking.", context=ctx)
    return HoldAlreadyTerminalError(f"Hold is {effective.value.lower()}.", context=ctx)
