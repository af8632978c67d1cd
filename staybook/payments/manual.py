# staybook/payments/manual.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from staybook.domain.enums import PaymentStatus
from staybook.payments.base import ProviderResult

MANUAL = "MANUAL"


def manual_ref(operation: str, key: str) -> str:
    """manual:<authorize|capture|refund>:<key>"""
    return f"manual:{operation}:{key}"


class ManualPaymentGateway:
    """
    Operator-confirmed payments: no network call, every operation succeeds
    and yields a deterministic reference.
    """

    provider = MANUAL

    async def authorize(self, *, key: str, amount: Decimal, currency: str) -> ProviderResult:
        return ProviderResult(
            provider_ref=manual_ref("authorize", key),
            status=PaymentStatus.AUTHORIZED,
            terminal=False,
        )

    async def capture(
        self, *, key: str, provider_ref: str, amount: Decimal, currency: str
    ) -> ProviderResult:
        return ProviderResult(
            provider_ref=manual_ref("capture", key),
            status=PaymentStatus.CAPTURED,
        )

    async def authorize_and_capture(
        self, *, key: str, amount: Decimal, currency: str
    ) -> ProviderResult:
        auth = await self.authorize(key=key, amount=amount, currency=currency)
        return await self.capture(
            key=key, provider_ref=auth.provider_ref, amount=amount, currency=currency
        )

    async def refund(
        self, *, key: str, provider_ref: Optional[str], amount: Decimal, currency: str
    ) -> ProviderResult:
        return ProviderResult(
            provider_ref=manual_ref("refund", key),
            status=PaymentStatus.REFUNDED,
        )
