# staybook/payments/base.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from staybook.domain.enums import PaymentStatus


class PaymentProviderError(Exception):
    """Transport / provider-side failure (timeout, 5xx, bad signature...)."""


@dataclass(frozen=True)
class ProviderResult:
    """
    Outcome of one provider call.

    terminal=False means the provider still needs an out-of-band step
    (e.g. a redirect before capture); status FAILED means declined.
    """

    provider_ref: str
    status: PaymentStatus
    terminal: bool = True
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != PaymentStatus.FAILED


class PaymentGateway(Protocol):
    """
    Provider contract. key is the payment id; providers must treat a repeated
    key as the same operation.
    """

    provider: str

    async def authorize(self, *, key: str, amount: Decimal, currency: str) -> ProviderResult: ...

    async def capture(
        self, *, key: str, provider_ref: str, amount: Decimal, currency: str
    ) -> ProviderResult: ...

    async def authorize_and_capture(
        self, *, key: str, amount: Decimal, currency: str
    ) -> ProviderResult: ...

    async def refund(
        self, *, key: str, provider_ref: Optional[str], amount: Decimal, currency: str
    ) -> ProviderResult: ...
