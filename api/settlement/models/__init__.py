"""All models imported here so their tables register on Base.metadata and relationships resolve."""

from settlement.models.base import Base
from settlement.models.booking import CANCELLED_STATUSES, Booking, BookingStatus
from settlement.models.commission import Commission, CommissionStatus, ReconciliationItem, ReconciliationKind
from settlement.models.payment import Payment, PaymentStatus, ProcessingPath, Refund, RefundStatus
from settlement.models.refund_request import RefundRequest, RefundRequestStatus

__all__ = [
    "Base",
    "Booking",
    "BookingStatus",
    "CANCELLED_STATUSES",
    "Payment",
    "PaymentStatus",
    "Refund",
    "RefundStatus",
    "ProcessingPath",
    "RefundRequest",
    "RefundRequestStatus",
    "Commission",
    "CommissionStatus",
    "ReconciliationItem",
    "ReconciliationKind",
]
