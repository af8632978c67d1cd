# staybook/services/ops_task_service.py
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.clock import Clock
from staybook.core.errors import IllegalTransitionError, NotFoundError
from staybook.core.tx import run_in_tx
from staybook.domain.enums import OpsTaskStatus
from staybook.metrics import OPS_TASKS
from staybook.models.ops_task import OpsTask, OpsTaskEvent
from staybook.services.audit_writer import AuditEventWriter

logger = logging.getLogger("staybook.ops")

_S = OpsTaskStatus

ALLOWED_TRANSITIONS: Dict[OpsTaskStatus, FrozenSet[OpsTaskStatus]] = {
    _S.PENDING: frozenset({_S.ASSIGNED, _S.IN_PROGRESS, _S.CANCELLED}),
    _S.ASSIGNED: frozenset({_S.PENDING, _S.IN_PROGRESS, _S.CANCELLED}),
    _S.IN_PROGRESS: frozenset({_S.COMPLETED, _S.CANCELLED}),
    _S.COMPLETED: frozenset(),
    _S.CANCELLED: frozenset(),
}


class OpsTaskService:
    """Operator-facing task reads and status changes."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock

    async def get(self, session: AsyncSession, task_id: str) -> OpsTask:
        async def _inner() -> OpsTask:
            task = await session.get(OpsTask, task_id, populate_existing=True)
            if task is None:
                raise NotFoundError(f"Ops task {task_id} not found.", context={"task_id": task_id})
            return task

        return await run_in_tx(session, _inner)

    async def list_for_booking(self, session: AsyncSession, booking_id: str) -> List[OpsTask]:
        async def _inner() -> List[OpsTask]:
            rows = await session.execute(
                select(OpsTask)
                .where(OpsTask.booking_id == booking_id)
                .order_by(OpsTask.type)
                .execution_options(populate_existing=True)
            )
            return list(rows.scalars())

        return await run_in_tx(session, _inner)

    async def history(self, session: AsyncSession, task_id: str) -> List[OpsTaskEvent]:
        async def _inner() -> List[OpsTaskEvent]:
            rows = await session.execute(
                select(OpsTaskEvent).where(OpsTaskEvent.task_id == task_id).order_by(OpsTaskEvent.id)
            )
            return list(rows.scalars())

        return await run_in_tx(session, _inner)

    async def transition(
        self,
        session: AsyncSession,
        task_id: str,
        to_status: OpsTaskStatus,
        *,
        assigned_to: Optional[str] = None,
        note: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> OpsTask:
        async def _inner() -> OpsTask:
            task = await self.get(session, task_id)
            current = task.status
            if to_status not in ALLOWED_TRANSITIONS[current]:
                raise IllegalTransitionError(
                    f"Ops task cannot move from {current.value} to {to_status.value}.",
                    context={"task_id": task_id, "from": current.value, "to": to_status.value},
                )

            now = self._clock.now()
            task.status = to_status
            task.updated_at = now
            if to_status == _S.ASSIGNED:
                task.assigned_to = assigned_to or task.assigned_to
            elif to_status == _S.PENDING:
                task.assigned_to = None
            elif assigned_to is not None:
                task.assigned_to = assigned_to
            if to_status == _S.COMPLETED:
                task.completed_at = now
            if to_status == _S.CANCELLED:
                task.cancelled_at = now

            session.add(
                OpsTaskEvent(task_id=task.id, from_status=current, to_status=to_status, note=note, at=now)
            )
            await AuditEventWriter.write(
                session,
                flow="OPS_TASK",
                event=f"TASK_{to_status.value}",
                ref=task.id,
                at=now,
                trace_id=trace_id,
                meta={"booking_id": task.booking_id, "from": current.value, "to": to_status.value},
            )
            await session.flush()
            return task

        task = await run_in_tx(session, _inner)
        OPS_TASKS.labels(task.type.value, to_status.value).inc()
        logger.info("ops task %s -> %s", task_id, to_status.value)
        return task
