# staybook/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    generate_latest,
    multiprocess,
)

# booking-core counters (import after PROMETHEUS_MULTIPROC_DIR is set, if used)
HOLDS = Counter("staybook_holds_total", "Hold transitions", ["outcome"])
BOOKINGS = Counter("staybook_bookings_total", "Booking transitions", ["outcome"])
PAYMENTS = Counter("staybook_payment_calls_total", "Payment provider calls", ["provider", "operation", "status"])
OPS_TASKS = Counter("staybook_ops_tasks_total", "Ops task transitions", ["type", "status"])
SWEEPS = Counter("staybook_sweep_expired_total", "Rows moved by background sweeps", ["job"])

router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    """
    Single process: export the default REGISTRY.
    Multiprocess (gunicorn / celery prefork): merge the shards under
    PROMETHEUS_MULTIPROC_DIR into a throwaway registry.
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
