# staybook/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class BizError(Exception):
    """
    Base of every business error the booking core raises.

    - code:   stable machine-readable error code (CONFLICT / HOLD_EXPIRED / ...)
    - status: HTTP status the API layer maps it to
    - context: extra fields for the Problem body (ids, statuses, dates)
    """

    code = "BIZ_ERROR"
    status = 400

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status: int | None = None,
        *,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        if status:
            self.status = status
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


class NotFoundError(BizError):
    code = "NOT_FOUND"
    status = 404


class InvalidIntervalError(BizError):
    code = "INVALID_INTERVAL"
    status = 422


class InvalidTtlError(BizError):
    code = "INVALID_TTL"
    status = 422


# ---- inventory ----


class HoldConflictError(BizError):
    """Requested nights overlap an active hold, a live booking, or a block."""

    code = "CONFLICT"
    status = 409


class DatesBlockedError(HoldConflictError):
    code = "DATES_BLOCKED"


# ---- stale state transitions ----


class HoldAlreadyTerminalError(BizError):
    code = "ALREADY_TERMINAL"
    status = 409


class HoldAlreadyConsumedError(HoldAlreadyTerminalError):
    code = "HOLD_ALREADY_CONSUMED"


class HoldExpiredError(HoldAlreadyTerminalError):
    code = "HOLD_EXPIRED"
    status = 410


class BookingAlreadyCancelledError(BizError):
    code = "ALREADY_CANCELLED"
    status = 409


class IllegalTransitionError(BizError):
    code = "ILLEGAL_TRANSITION"
    status = 409


# ---- payments ----


class PaymentFailedError(BizError):
    code = "PAYMENT_FAILED"
    status = 402


class UnknownProviderError(BizError):
    code = "UNKNOWN_PROVIDER"
    status = 422


class PaymentAmountMismatchError(BizError):
    """Client-side amount / currency disagrees with the server quote."""

    code = "AMOUNT_MISMATCH"
    status = 422


# ---- booking requests ----


class IdempotencyKeyReusedError(BizError):
    code = "IDEMPOTENCY_KEY_REUSED"
    status = 409


class CancellationNotAllowedError(BizError):
    code = "CANCELLATION_NOT_ALLOWED"
    status = 409
