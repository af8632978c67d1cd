# staybook/core/audit.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import uuid4


@dataclass
class TraceContext:
    """
    Lightweight trace context:

    - trace_id: "t_" + 12 hex chars, shared by every audit row of one operation
    - source: optional origin ("http:/holds", "job:hold_ttl", ...)
    """

    trace_id: str
    source: Optional[str] = None


def new_trace(source: str) -> TraceContext:
    return TraceContext(trace_id=f"t_{uuid4().hex[:12]}", source=source)
