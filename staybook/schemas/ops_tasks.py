# staybook/schemas/ops_tasks.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from staybook.domain.enums import OpsTaskStatus, OpsTaskType


class OpsTaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    property_id: str
    type: OpsTaskType
    status: OpsTaskStatus
    assigned_to: Optional[str] = None
    due_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class OpsTaskPatchIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: OpsTaskStatus
    assigned_to: Optional[str] = Field(None, max_length=200)
    note: Optional[str] = Field(None, max_length=500)
