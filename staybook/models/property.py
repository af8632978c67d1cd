# staybook/models/property.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staybook.db.base import Base
from staybook.db.types import UtcDateTime


class Property(Base):
    """Rental unit with its nightly rate and one-off cleaning fee."""

    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    cleaning_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AED")
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Property id={self.id}>"


class ServicePlan(Base):
    """Operator service bundle a property can subscribe to."""

    __tablename__ = "service_plans"

    code: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    includes_cleaning: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_inspection: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_linen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_restock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    includes_maintenance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class PropertyServiceConfig(Base):
    """
    Per-property ops configuration.

    A flag left NULL falls back to the plan; a set flag overrides it.
    """

    __tablename__ = "property_service_configs"

    property_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("properties.id"), primary_key=True
    )
    plan_code: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("service_plans.code"), nullable=True
    )
    cleaning_required: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    inspection_required: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    linen_change_required: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    restock_required: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    maintenance_included: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    plan: Mapped[Optional[ServicePlan]] = relationship(ServicePlan, lazy="selectin")
