from staybook import tasks
from staybook.worker import celery


def test_beat_schedule_points_at_registered_tasks():
    scheduled = {entry["task"] for entry in celery.conf.beat_schedule.values()}
    assert scheduled == {"staybook.sweep_expired_holds", "staybook.expire_pending_payments"}
    for name in scheduled:
        assert name in celery.tasks


def test_tasks_are_bound_to_the_app():
    assert tasks.sweep_expired_holds.name == "staybook.sweep_expired_holds"
    assert tasks.expire_pending_payments.app is celery
