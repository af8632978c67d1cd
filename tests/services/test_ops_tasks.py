from datetime import date

import pytest

from staybook.core.errors import IllegalTransitionError, NotFoundError
from staybook.domain.enums import OpsTaskStatus, OpsTaskType
from staybook.domain.intervals import ReservationInterval
from staybook.domain.ports import ServiceConfig, ServicePlanView
from staybook.services.booking_state_machine import PaymentIntent
from staybook.services.ops_task_cascade import required_task_types


def plan(**flags) -> ServicePlanView:
    base = dict(
        code="X",
        includes_cleaning=False,
        includes_inspection=False,
        includes_linen=False,
        includes_restock=False,
        includes_maintenance=False,
    )
    base.update(flags)
    return ServicePlanView(**base)


def config(**flags) -> ServiceConfig:
    base = dict(
        property_id="P1",
        plan=None,
        cleaning_required=None,
        inspection_required=None,
        linen_change_required=None,
        restock_required=None,
        maintenance_included=None,
    )
    base.update(flags)
    return ServiceConfig(**base)


def test_required_types_config_overrides_plan():
    p = plan(includes_cleaning=True, includes_restock=True)
    c = config(plan=p, restock_required=False, linen_change_required=True)
    assert required_task_types(c, p) == [OpsTaskType.CLEANING, OpsTaskType.LINEN]


def test_required_types_without_config_or_plan():
    assert required_task_types(None, None) == []
    assert required_task_types(None, plan(includes_inspection=True)) == [OpsTaskType.INSPECTION]


async def _tasks(session, container):
    hold = await container.holds.create_hold(session, ReservationInterval("P1", date(2025, 6, 1), date(2025, 6, 3)))
    booking = await container.bookings.confirm(session, hold.id, PaymentIntent())
    return {t.type: t for t in await container.ops_tasks.list_for_booking(session, booking.id)}


@pytest.mark.asyncio
async def test_happy_path_transitions(session, container, clock):
    task = (await _tasks(session, container))[OpsTaskType.CLEANING]

    assigned = await container.ops_tasks.transition(session, task.id, OpsTaskStatus.ASSIGNED, assigned_to="crew-1")
    assert assigned.assigned_to == "crew-1"
    await container.ops_tasks.transition(session, task.id, OpsTaskStatus.IN_PROGRESS)
    clock.advance(1800)
    done = await container.ops_tasks.transition(session, task.id, OpsTaskStatus.COMPLETED, note="spotless")

    assert done.status == OpsTaskStatus.COMPLETED
    assert done.completed_at == clock.now()
    history = await container.ops_tasks.history(session, task.id)
    assert [e.to_status for e in history] == [
        OpsTaskStatus.PENDING,
        OpsTaskStatus.ASSIGNED,
        OpsTaskStatus.IN_PROGRESS,
        OpsTaskStatus.COMPLETED,
    ]
    assert history[-1].note == "spotless"


@pytest.mark.asyncio
async def test_unassign_clears_assignee(session, container):
    task = (await _tasks(session, container))[OpsTaskType.LINEN]
    await container.ops_tasks.transition(session, task.id, OpsTaskStatus.ASSIGNED, assigned_to="crew-2")
    back = await container.ops_tasks.transition(session, task.id, OpsTaskStatus.PENDING)
    assert back.assigned_to is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path,illegal",
    [
        ([], OpsTaskStatus.COMPLETED),
        ([OpsTaskStatus.IN_PROGRESS, OpsTaskStatus.COMPLETED], OpsTaskStatus.PENDING),
        ([OpsTaskStatus.CANCELLED], OpsTaskStatus.ASSIGNED),
    ],
)
async def test_illegal_transitions(session, container, path, illegal):
    task = (await _tasks(session, container))[OpsTaskType.INSPECTION]
    task_id = task.id
    for step in path:
        await container.ops_tasks.transition(session, task_id, step)

    with pytest.raises(IllegalTransitionError) as ei:
        await container.ops_tasks.transition(session, task_id, illegal)
    assert ei.value.context["to"] == illegal.value


@pytest.mark.asyncio
async def test_unknown_task(session, container):
    with pytest.raises(NotFoundError):
        await container.ops_tasks.transition(session, "missing", OpsTaskStatus.ASSIGNED)
