# staybook/models/hold.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Date, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from staybook.db.base import Base
from staybook.db.types import UtcDateTime
from staybook.domain.enums import HoldStatus
from staybook.domain.intervals import ReservationInterval


class Hold(Base):
    """Time-bounded exclusive claim on a property's nights, prior to payment."""

    __tablename__ = "holds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    property_id: Mapped[str] = mapped_column(String(64), ForeignKey("properties.id"), nullable=False)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[HoldStatus] = mapped_column(
        Enum(HoldStatus, name="hold_status", native_enum=False, length=16),
        nullable=False,
        default=HoldStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    # terminal stamps
    consumed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    released_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    expired_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    booking_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_holds_property_status", "property_id", "status"),
        Index("ix_holds_status_expires", "status", "expires_at"),
        CheckConstraint("check_in < check_out", name="ck_holds_interval"),
    )

    @property
    def interval(self) -> ReservationInterval:
        return ReservationInterval(self.property_id, self.check_in, self.check_out)

    def __repr__(self) -> str:
        return (
            f"<Hold id={self.id} property={self.property_id} "
            f"[{self.check_in}, {self.check_out}) status={self.status}>"
        )
