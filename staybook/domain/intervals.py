# staybook/domain/intervals.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List

from staybook.core.errors import InvalidIntervalError

ONE_NIGHT = timedelta(days=1)


@dataclass(frozen=True)
class ReservationInterval:
    """
    Half-open stay [check_in, check_out) of one property.

    The check-out day is not a night of the stay, so a same-day check-in by
    the next guest does not conflict.
    """

    property_id: str
    check_in: date
    check_out: date

    def __post_init__(self) -> None:
        if not self.property_id:
            raise InvalidIntervalError("property_id is required")
        if self.check_in >= self.check_out:
            raise InvalidIntervalError(
                "check_in must be earlier than check_out",
                context={"check_in": self.check_in.isoformat(), "check_out": self.check_out.isoformat()},
            )

    @property
    def night_count(self) -> int:
        return (self.check_out - self.check_in).days

    def nights(self) -> List[date]:
        return nights_between(self.check_in, self.check_out)

    def overlaps(self, other: "ReservationInterval") -> bool:
        return self.property_id == other.property_id and ranges_overlap(
            self.check_in, self.check_out, other.check_in, other.check_out
        )


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start < b_end and b_start < a_end


def nights_between(check_in: date, check_out: date) -> List[date]:
    out: List[date] = []
    d = check_in
    while d < check_out:
        out.append(d)
        d += ONE_NIGHT
    return out
