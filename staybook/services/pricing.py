# staybook/services/pricing.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from staybook.core.errors import NotFoundError, PaymentAmountMismatchError
from staybook.domain.intervals import ReservationInterval
from staybook.models.property import Property

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Quote:
    """Price of a stay: nights * nightly_rate + cleaning_fee."""

    property_id: str
    nights: int
    nightly_rate: Decimal
    cleaning_fee: Decimal
    currency: str

    @property
    def subtotal(self) -> Decimal:
        return (self.nightly_rate * self.nights).quantize(CENT)

    @property
    def total(self) -> Decimal:
        return (self.subtotal + self.cleaning_fee).quantize(CENT)

    def check(self, amount: Optional[Decimal], currency: Optional[str]) -> None:
        """Reject a client-side amount or currency that disagrees with this quote."""
        if amount is not None and Decimal(amount).quantize(CENT) != self.total:
            raise PaymentAmountMismatchError(
                f"Amount {amount} does not match the quoted total {self.total}.",
                context={"expected": str(self.total), "got": str(amount), "currency": self.currency},
            )
        if currency and currency.upper() != self.currency:
            raise PaymentAmountMismatchError(
                f"Currency {currency.upper()} does not match the property currency {self.currency}.",
                context={"expected_currency": self.currency, "got_currency": currency.upper()},
            )


def quote_for(prop: Property, interval: ReservationInterval, *, default_currency: str = "AED") -> Quote:
    return Quote(
        property_id=prop.id,
        nights=interval.night_count,
        nightly_rate=Decimal(prop.base_price or 0).quantize(CENT),
        cleaning_fee=Decimal(prop.cleaning_fee or 0).quantize(CENT),
        currency=(prop.currency or default_currency).upper(),
    )


async def quote_stay(
    session: AsyncSession, interval: ReservationInterval, *, default_currency: str = "AED"
) -> Quote:
    prop = await session.get(Property, interval.property_id)
    if prop is None:
        raise NotFoundError(
            f"Property {interval.property_id} not found.", context={"property_id": interval.property_id}
        )
    return quote_for(prop, interval, default_currency=default_currency)
