# staybook/schemas/calendar.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from staybook.domain.enums import DayStatus


class ConflictOut(BaseModel):
    kind: str
    id: str
    check_in: date
    check_out: date
    status: str


class DayOut(BaseModel):
    night: date
    status: DayStatus
    owner_id: Optional[str] = None


class AvailabilityOut(BaseModel):
    property_id: str
    days: List[DayOut]


class BlockIn(BaseModel):
    check_in: date
    check_out: date
    note: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _half_open(self) -> "BlockIn":
        if self.check_in >= self.check_out:
            raise ValueError("check_in must be earlier than check_out")
        return self


class BlockOut(BaseModel):
    property_id: str
    nights: List[date] = []
    count: int = 0


class QuoteOut(BaseModel):
    property_id: str
    check_in: date
    check_out: date
    nights: int
    nightly_rate: Decimal
    cleaning_fee: Decimal
    subtotal: Decimal
    total: Decimal
    currency: str
