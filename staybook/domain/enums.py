# staybook/domain/enums.py
from __future__ import annotations

from enum import Enum


class HoldStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CONSUMED = "CONSUMED"
    RELEASED = "RELEASED"


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


# bookings that occupy their nights in the ledger
LIVE_BOOKING_STATUSES = (BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED)


class PaymentStatus(str, Enum):
    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class PaymentEventType(str, Enum):
    AUTHORIZE = "AUTHORIZE"
    CAPTURE = "CAPTURE"
    REFUND = "REFUND"


class OpsTaskStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# tasks a booking cancellation still reaches
OPEN_TASK_STATUSES = (OpsTaskStatus.PENDING, OpsTaskStatus.ASSIGNED, OpsTaskStatus.IN_PROGRESS)


class OpsTaskType(str, Enum):
    CLEANING = "CLEANING"
    INSPECTION = "INSPECTION"
    LINEN = "LINEN"
    RESTOCK = "RESTOCK"


class ClaimOwner(str, Enum):
    HOLD = "HOLD"
    BOOKING = "BOOKING"
    BLOCK = "BLOCK"


class DayStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    HELD = "HELD"
    BOOKED = "BOOKED"
    BLOCKED = "BLOCKED"
