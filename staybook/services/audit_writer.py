# staybook/services/audit_writer.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from staybook.models.audit_event import AuditEvent

logger = logging.getLogger("staybook.audit")


class AuditEventWriter:
    """
    Single entry point for audit_events rows.

    - category = flow (HOLD / BOOKING / PAYMENT / OPS_TASK / CALENDAR)
    - ref      = business id (hold id, booking id, property id ...)
    - meta     = JSON, always containing flow and event
    - trace_id = groups the rows written by one operation

    The row joins the caller's transaction; it is never committed here.
    """

    @staticmethod
    async def write(
        session: AsyncSession,
        *,
        flow: str,
        event: str,
        ref: str,
        at: datetime,
        trace_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload: Dict[str, Any] = dict(meta or {})
        payload.setdefault("flow", flow)
        payload.setdefault("event", event)
        if trace_id:
            payload.setdefault("trace_id", trace_id)

        session.add(
            AuditEvent(
                category=flow,
                ref=ref,
                meta=payload,
                trace_id=trace_id,
                created_at=at,
            )
        )
        logger.debug("audit %s/%s ref=%s", flow, event, ref)
