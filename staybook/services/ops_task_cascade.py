# staybook/services/ops_task_cascade.py
from __future__ import annotations

import logging
from datetime import datetime, time
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.clock import UTC, Clock
from staybook.domain.enums import OPEN_TASK_STATUSES, OpsTaskStatus, OpsTaskType
from staybook.domain.events import BookingCancelled, BookingConfirmed
from staybook.domain.ports import ServiceConfig, ServicePlanView
from staybook.metrics import OPS_TASKS
from staybook.models.ops_task import OpsTask, OpsTaskEvent

logger = logging.getLogger("staybook.ops")

# config flag / plan flag per task type, in creation order
_TASK_FLAGS = (
    (OpsTaskType.CLEANING, "cleaning_required", "includes_cleaning"),
    (OpsTaskType.INSPECTION, "inspection_required", "includes_inspection"),
    (OpsTaskType.LINEN, "linen_change_required", "includes_linen"),
    (OpsTaskType.RESTOCK, "restock_required", "includes_restock"),
)


def required_task_types(
    config: Optional[ServiceConfig], plan: Optional[ServicePlanView]
) -> List[OpsTaskType]:
    """
    A flag set on the property config wins; an unset flag falls back to the
    plan; no plan means not required.
    """
    plan = plan or (config.plan if config is not None else None)
    out: List[OpsTaskType] = []
    for task_type, config_flag, plan_flag in _TASK_FLAGS:
        value = getattr(config, config_flag) if config is not None else None
        if value is None:
            value = getattr(plan, plan_flag) if plan is not None else False
        if value:
            out.append(task_type)
    return out


class OpsTaskCascade:
    """
    BookingHooks implementation that keeps operator tasks in step with the
    booking. Runs inside the booking transition's transaction; an exception
    here rolls the transition back.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock

    async def on_booking_confirmed(self, session: AsyncSession, event: BookingConfirmed) -> None:
        booking = event.booking
        wanted = required_task_types(event.service_config, event.service_plan)
        if not wanted:
            return

        existing = set(
            (
                await session.execute(
                    select(OpsTask.type).where(OpsTask.booking_id == booking.id)
                )
            ).scalars()
        )
        now = self._clock.now()
        due_at = datetime.combine(booking.check_out, time.min, tzinfo=UTC)

        created: List[OpsTask] = []
        for task_type in wanted:
            if task_type in existing:
                continue
            task = OpsTask(
                id=str(uuid4()),
                booking_id=booking.id,
                property_id=booking.property_id,
                type=task_type,
                status=OpsTaskStatus.PENDING,
                due_at=due_at,
                created_at=now,
                updated_at=now,
            )
            session.add(task)
            created.append(task)

        if not created:
            return
        await session.flush()
        for task in created:
            session.add(
                OpsTaskEvent(
                    task_id=task.id,
                    from_status=None,
                    to_status=OpsTaskStatus.PENDING,
                    note="created on booking confirmation",
                    at=now,
                )
            )
            OPS_TASKS.labels(task.type.value, OpsTaskStatus.PENDING.value).inc()
        await session.flush()
        logger.info(
            "ops tasks created booking=%s types=%s",
            booking.id,
            ",".join(t.type.value for t in created),
        )

    async def on_booking_cancelled(self, session: AsyncSession, event: BookingCancelled) -> None:
        """Cancel every open task of the booking; COMPLETED work is kept as is."""
        booking = event.booking
        now = self._clock.now()
        tasks = (
            await session.execute(
                select(OpsTask).where(
                    OpsTask.booking_id == booking.id,
                    OpsTask.status.in_(OPEN_TASK_STATUSES),
                )
            )
        ).scalars().all()

        for task in tasks:
            previous = task.status
            task.status = OpsTaskStatus.CANCELLED
            task.cancelled_at = now
            task.updated_at = now
            session.add(
                OpsTaskEvent(
                    task_id=task.id,
                    from_status=previous,
                    to_status=OpsTaskStatus.CANCELLED,
                    note=f"booking cancelled: {event.reason}" if event.reason else "booking cancelled",
                    at=now,
                )
            )
            OPS_TASKS.labels(task.type.value, OpsTaskStatus.CANCELLED.value).inc()

        if tasks:
            await session.flush()
            logger.info("ops tasks cancelled booking=%s count=%d", booking.id, len(tasks))
