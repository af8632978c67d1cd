# staybook/payments/__init__.py
from staybook.payments.base import PaymentGateway, PaymentProviderError, ProviderResult
from staybook.payments.manual import MANUAL, ManualPaymentGateway
from staybook.payments.registry import PaymentGatewayRegistry

__all__ = [
    "MANUAL",
    "ManualPaymentGateway",
    "PaymentGateway",
    "PaymentGatewayRegistry",
    "PaymentProviderError",
    "ProviderResult",
]
