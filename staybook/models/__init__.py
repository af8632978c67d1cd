# staybook/models/__init__.py
from staybook.models.audit_event import AuditEvent
from staybook.models.booking import Booking
from staybook.models.hold import Hold
from staybook.models.night_claim import NightClaim
from staybook.models.ops_task import OpsTask, OpsTaskEvent
from staybook.models.payment import Payment, PaymentEvent
from staybook.models.property import Property, PropertyServiceConfig, ServicePlan

__all__ = [
    "AuditEvent",
    "Booking",
    "Hold",
    "NightClaim",
    "OpsTask",
    "OpsTaskEvent",
    "Payment",
    "PaymentEvent",
    "Property",
    "PropertyServiceConfig",
    "ServicePlan",
]
