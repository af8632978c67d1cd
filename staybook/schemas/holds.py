# staybook/schemas/holds.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from staybook.domain.enums import HoldStatus


class HoldCreateIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    property_id: str = Field(..., min_length=1, max_length=64)
    check_in: date
    check_out: date
    ttl_seconds: Optional[int] = Field(None, gt=0, description="defaults to HOLD_TTL_DEFAULT_SECONDS")

    @model_validator(mode="after")
    def _half_open(self) -> "HoldCreateIn":
        if self.check_in >= self.check_out:
            raise ValueError("check_in must be earlier than check_out")
        return self


class HoldExtendIn(BaseModel):
    ttl_seconds: Optional[int] = Field(None, gt=0)


class HoldOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    check_in: date
    check_out: date
    status: HoldStatus
    created_at: datetime
    expires_at: datetime
    booking_id: Optional[str] = None
    consumed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
