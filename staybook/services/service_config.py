# staybook/services/service_config.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from staybook.domain.ports import ServiceConfig, ServicePlanView
from staybook.models.property import PropertyServiceConfig, ServicePlan


def plan_view(plan: Optional[ServicePlan]) -> Optional[ServicePlanView]:
    if plan is None:
        return None
    return ServicePlanView(
        code=plan.code,
        includes_cleaning=bool(plan.includes_cleaning),
        includes_inspection=bool(plan.includes_inspection),
        includes_linen=bool(plan.includes_linen),
        includes_restock=bool(plan.includes_restock),
        includes_maintenance=bool(plan.includes_maintenance),
    )


class SqlServiceConfigLookup:
    """ServiceConfigLookup over property_service_configs (+ its plan)."""

    async def get_service_config(
        self, session: AsyncSession, property_id: str
    ) -> Optional[ServiceConfig]:
        row = await session.get(PropertyServiceConfig, property_id)
        if row is None:
            return None
        return ServiceConfig(
            property_id=row.property_id,
            plan=plan_view(row.plan),
            cleaning_required=row.cleaning_required,
            inspection_required=row.inspection_required,
            linen_change_required=row.linen_change_required,
            restock_required=row.restock_required,
            maintenance_included=row.maintenance_included,
        )
