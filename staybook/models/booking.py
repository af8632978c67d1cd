# staybook/models/booking.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Date, Enum, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from staybook.db.base import Base
from staybook.db.types import UtcDateTime
from staybook.domain.enums import BookingStatus
from staybook.domain.intervals import ReservationInterval


class Booking(Base):
    """Booking created from a consumed hold. Cancelled rows stay for audit."""

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    property_id: Mapped[str] = mapped_column(String(64), ForeignKey("properties.id"), nullable=False)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)

    # origin hold (nullable for bookings imported from elsewhere)
    hold_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("holds.id"), nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", native_enum=False, length=24),
        nullable=False,
    )
    payment_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # quoted at confirm time: nights * base_price + cleaning_fee
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    payment_expires_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_bookings_idempotency_key"),
        Index("ix_bookings_property_status", "property_id", "status"),
        Index("ix_bookings_status_payment_expires", "status", "payment_expires_at"),
        CheckConstraint("check_in < check_out", name="ck_bookings_interval"),
    )

    @property
    def interval(self) -> ReservationInterval:
        return ReservationInterval(self.property_id, self.check_in, self.check_out)

    def __repr__(self) -> str:
        return (
            f"<Booking id={self.id} property={self.property_id} "
            f"[{self.check_in}, {self.check_out}) status={self.status}>"
        )
