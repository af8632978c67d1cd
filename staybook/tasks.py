# staybook/tasks.py
from __future__ import annotations

import asyncio

from staybook.jobs import hold_ttl, payment_expiry
from staybook.worker import celery


@celery.task(name="staybook.sweep_expired_holds")
def sweep_expired_holds() -> int:
    """Beat entry: persist lapsed holds as EXPIRED. Returns the count moved."""
    return asyncio.run(hold_ttl.main())


@celery.task(name="staybook.expire_pending_payments")
def expire_pending_payments() -> int:
    """Beat entry: cancel bookings whose payment window lapsed."""
    return asyncio.run(payment_expiry.main())
