# staybook/api/problem.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypedDict


class ProblemDetail(TypedDict, total=False):
    type: str  # validation | conflict | state
    path: str  # e.g. validation[0]
    reason: str


class NextAction(TypedDict, total=False):
    action: str
    label: str


@dataclass(frozen=True)
class Problem:
    error_code: str
    message: str
    http_status: int
    context: Optional[Dict[str, Any]] = None
    details: Optional[List[ProblemDetail]] = None
    next_actions: Optional[List[NextAction]] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "http_status": int(self.http_status),
        }
        if self.context:
            out["context"] = self.context
        if self.details:
            out["details"] = self.details
        if self.next_actions:
            out["next_actions"] = self.next_actions
        if self.trace_id:
            out["trace_id"] = self.trace_id
        return out


REPICK_DATES: NextAction = {"action": "repick_dates", "label": "Choose different dates"}
NEW_HOLD: NextAction = {"action": "new_hold", "label": "Start a new hold"}
RETRY_PAYMENT: NextAction = {"action": "retry_payment", "label": "Retry the payment"}
REQUOTE: NextAction = {"action": "requote", "label": "Fetch a fresh quote"}

# error_code → what the client can do next
NEXT_ACTIONS: Dict[str, List[NextAction]] = {
    "CONFLICT": [REPICK_DATES],
    "DATES_BLOCKED": [REPICK_DATES],
    "HOLD_EXPIRED": [NEW_HOLD],
    "HOLD_ALREADY_CONSUMED": [NEW_HOLD],
    "PAYMENT_FAILED": [RETRY_PAYMENT],
    "AMOUNT_MISMATCH": [REQUOTE],
}


def make_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    details: Optional[Sequence[ProblemDetail]] = None,
    next_actions: Optional[Sequence[NextAction]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    p = Problem(
        error_code=str(error_code),
        message=str(message),
        http_status=int(status_code),
        context=context,
        details=list(details) if details else None,
        next_actions=list(next_actions) if next_actions else None,
        trace_id=trace_id,
    )
    return p.to_dict()
