# staybook/api/routers/ops_tasks.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from staybook.api.deps import get_container, get_session, get_trace_id
from staybook.container import Container
from staybook.schemas.ops_tasks import OpsTaskOut, OpsTaskPatchIn

router = APIRouter(prefix="/ops-tasks", tags=["ops-tasks"])


@router.patch("/{task_id}", response_model=OpsTaskOut)
async def update_ops_task(
    task_id: str,
    req: OpsTaskPatchIn,
    session: AsyncSession = Depends(get_session),
    container: Container = Depends(get_container),
    trace_id: str = Depends(get_trace_id),
) -> OpsTaskOut:
    task = await container.ops_tasks.transition(
        session,
        task_id,
        req.status,
        assigned_to=req.assigned_to,
        note=req.note,
        trace_id=trace_id,
    )
    return OpsTaskOut.model_validate(task)
