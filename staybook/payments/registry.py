# staybook/payments/registry.py
from __future__ import annotations

from typing import Dict, Iterable

from staybook.core.errors import UnknownProviderError
from staybook.payments.base import PaymentGateway


class PaymentGatewayRegistry:
    """Provider name (upper-case) → gateway instance."""

    def __init__(self, gateways: Iterable[PaymentGateway] = ()) -> None:
        self._gateways: Dict[str, PaymentGateway] = {}
        for gw in gateways:
            self.register(gw)

    def register(self, gateway: PaymentGateway) -> None:
        self._gateways[gateway.provider.upper()] = gateway

    def get(self, provider: str) -> PaymentGateway:
        gw = self._gateways.get((provider or "").upper())
        if gw is None:
            raise UnknownProviderError(
                f"Payment provider {provider!r} is not configured.",
                context={"provider": provider, "known": sorted(self._gateways)},
            )
        return gw

    def providers(self) -> list[str]:
        return sorted(self._gateways)
