from decimal import Decimal

import pytest

from staybook.core.errors import UnknownProviderError
from staybook.domain.enums import PaymentStatus
from staybook.payments import MANUAL, ManualPaymentGateway, PaymentGatewayRegistry
from tests.helpers.gateways import DecliningGateway


@pytest.mark.asyncio
async def test_manual_gateway_references_follow_key():
    gw = ManualPaymentGateway()
    auth = await gw.authorize(key="pay-1", amount=Decimal("10.00"), currency="AED")
    assert auth.status == PaymentStatus.AUTHORIZED
    assert auth.terminal is False

    cap = await gw.authorize_and_capture(key="pay-1", amount=Decimal("10.00"), currency="AED")
    assert cap.status == PaymentStatus.CAPTURED
    assert cap.terminal and cap.ok
    assert cap.provider_ref == "manual:capture:pay-1"

    again = await gw.authorize_and_capture(key="pay-1", amount=Decimal("10.00"), currency="AED")
    assert again.provider_ref == cap.provider_ref

    ref = await gw.refund(key="pay-1", provider_ref=cap.provider_ref, amount=Decimal("10.00"), currency="AED")
    assert ref.status == PaymentStatus.REFUNDED
    assert ref.provider_ref == "manual:refund:pay-1"


def test_registry_lookup_is_case_insensitive():
    reg = PaymentGatewayRegistry([ManualPaymentGateway(), DecliningGateway()])
    assert reg.get("manual").provider == MANUAL
    assert reg.get("Decline").provider == "DECLINE"
    assert sorted(reg.providers()) == ["DECLINE", MANUAL]


def test_registry_unknown_provider():
    reg = PaymentGatewayRegistry([ManualPaymentGateway()])
    with pytest.raises(UnknownProviderError) as ei:
        reg.get("STRIPE")
    assert ei.value.status == 422
