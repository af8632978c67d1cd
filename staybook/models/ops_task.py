# staybook/models/ops_task.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from staybook.db.base import Base
from staybook.db.types import UtcDateTime
from staybook.domain.enums import OpsTaskStatus, OpsTaskType

_task_status = Enum(OpsTaskStatus, name="ops_task_status", native_enum=False, length=16)


class OpsTask(Base):
    """Operator fulfillment task for a booking. Never deleted."""

    __tablename__ = "ops_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), nullable=False)
    property_id: Mapped[str] = mapped_column(String(64), ForeignKey("properties.id"), nullable=False)
    type: Mapped[OpsTaskType] = mapped_column(
        Enum(OpsTaskType, name="ops_task_type", native_enum=False, length=16),
        nullable=False,
    )
    status: Mapped[OpsTaskStatus] = mapped_column(_task_status, nullable=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    due_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("booking_id", "type", name="uq_ops_tasks_booking_type"),
        Index("ix_ops_tasks_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<OpsTask id={self.id} booking={self.booking_id} {self.type} status={self.status}>"


class OpsTaskEvent(Base):
    """Append-only status history of an ops task."""

    __tablename__ = "ops_task_events"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    task_id: Mapped[str] = mapped_column(String(36), ForeignKey("ops_tasks.id"), nullable=False)
    from_status: Mapped[Optional[OpsTaskStatus]] = mapped_column(_task_status, nullable=True)
    to_status: Mapped[OpsTaskStatus] = mapped_column(_task_status, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    __table_args__ = (Index("ix_ops_task_events_task", "task_id"),)
