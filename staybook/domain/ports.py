# staybook/domain/ports.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class ServicePlanView:
    code: str
    includes_cleaning: bool = False
    includes_inspection: bool = False
    includes_linen: bool = False
    includes_restock: bool = False
    includes_maintenance: bool = False


@dataclass(frozen=True)
class ServiceConfig:
    """Per-property overrides; None means "defer to the plan"."""

    property_id: str
    plan: Optional[ServicePlanView] = None
    cleaning_required: Optional[bool] = None
    inspection_required: Optional[bool] = None
    linen_change_required: Optional[bool] = None
    restock_required: Optional[bool] = None
    maintenance_included: Optional[bool] = None


class ServiceConfigLookup(Protocol):
    async def get_service_config(
        self, session: AsyncSession, property_id: str
    ) -> Optional[ServiceConfig]: ...
