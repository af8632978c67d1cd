# staybook/schemas/bookings.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from staybook.domain.enums import BookingStatus, PaymentStatus
from staybook.payments.manual import MANUAL


class ConfirmIn(BaseModel):
    """Payment intent for POST /holds/{id}/confirm."""

    model_config = ConfigDict(str_strip_whitespace=True)

    provider: str = Field(default=MANUAL, min_length=1, max_length=32)
    # optional echo of the quoted total; a mismatch is rejected
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)


class CancelIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    check_in: date
    check_out: date
    hold_id: Optional[str] = None
    status: BookingStatus
    payment_ref: Optional[str] = None
    idempotency_key: Optional[str] = None
    total_amount: Decimal
    currency: str
    created_at: datetime
    payment_expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None


class CancellationOut(BaseModel):
    booking: BookingOut
    refund_status: Optional[PaymentStatus] = None
    refund_amount: Decimal = Decimal("0.00")
    refund_ref: Optional[str] = None
    refund_error: Optional[str] = None
