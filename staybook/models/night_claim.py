# staybook/models/night_claim.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import BigInteger, Date, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from staybook.db.base import Base
from staybook.db.types import UtcDateTime
from staybook.domain.enums import ClaimOwner


class NightClaim(Base):
    """
    One occupied night of a property.

    UNIQUE (property_id, night) is the storage-level double-booking guard:
    of two concurrent inserts for the same night only one can commit.
    """

    __tablename__ = "night_claims"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    property_id: Mapped[str] = mapped_column(String(64), ForeignKey("properties.id"), nullable=False)
    night: Mapped[date] = mapped_column(Date, nullable=False)

    owner_kind: Mapped[ClaimOwner] = mapped_column(
        Enum(ClaimOwner, name="claim_owner", native_enum=False, length=16),
        nullable=False,
    )
    # hold id / booking id; property id for BLOCK claims
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("property_id", "night", name="uq_night_claims_property_night"),
        Index("ix_night_claims_owner", "owner_kind", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<NightClaim {self.property_id}@{self.night} {self.owner_kind}:{self.owner_id}>"
