# staybook/worker.py
# Celery app: beat schedule for the booking-core sweeps; eager in tests
from __future__ import annotations

import os

from celery import Celery

from staybook.core.config import get_settings

_settings = get_settings()

celery = Celery(
    "staybook",
    broker=_settings.REDIS_URL,
    backend=_settings.CELERY_RESULT_BACKEND,
    include=["staybook.tasks"],
)

celery.conf.task_acks_late = True
celery.conf.worker_prefetch_multiplier = 1
celery.conf.broker_transport_options = {"visibility_timeout": 3600}

celery.conf.beat_schedule = {
    "hold-ttl-sweep": {
        "task": "staybook.sweep_expired_holds",
        "schedule": _settings.SWEEP_INTERVAL_SECONDS,
    },
    "pending-payment-expiry": {
        "task": "staybook.expire_pending_payments",
        "schedule": _settings.SWEEP_INTERVAL_SECONDS,
    },
}

# tests / CI: run tasks in-process
_TESTING = bool(os.getenv("PYTEST_CURRENT_TEST")) or os.getenv("CELERY_ALWAYS_EAGER") == "1"
if _TESTING:
    celery.conf.task_always_eager = True
    celery.conf.task_eager_propagates = True
    celery.conf.task_store_eager_result = True
