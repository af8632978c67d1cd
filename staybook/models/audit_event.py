# staybook/models/audit_event.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from staybook.db.base import Base
from staybook.db.types import UtcDateTime


class AuditEvent(Base):
    """
    Audit trail row.

    category = flow (HOLD / BOOKING / PAYMENT), ref = business id,
    meta carries at least {flow, event}.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    ref: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    trace_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    __table_args__ = (
        Index("ix_audit_events_ref", "ref"),
        Index("ix_audit_events_trace_id", "trace_id"),
    )
