"""Payment and refund models.

Payments are written by the checkout flow and only read here. Refunds are
written once the gateway has acknowledged a refund and later updated by the
gateway's webhook, the only asynchronous edge in the settlement flow.
"""

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from settlement.models.booking import Booking


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


class RefundStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingPath(str, enum.Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    amount_minor: Mapped[int] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=lambda e: [x.value for x in e]),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)  # Stripe PaymentIntent id

    booking: Mapped["Booking"] = relationship(lazy="raise")

    __table_args__ = (Index("ix_payments_booking_status", "booking_id", "status"),)

    def __repr__(self) -> str:
        return f"<Payment {self.transaction_id} {self.status} {self.amount_minor} {self.currency}>"


class Refund(TimestampMixin, Base):
    __tablename__ = "refunds"

    id: Mapped[int] = mapped_column(primary_key=True)
    payment_id: Mapped[int] = mapped_column(ForeignKey("payments.id"), nullable=False)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    refund_request_id: Mapped[int | None] = mapped_column(ForeignKey("refund_requests.id"))

    amount_minor: Mapped[int] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[RefundStatus] = mapped_column(
        Enum(RefundStatus, name="refund_status", values_callable=lambda e: [x.value for x in e]),
        default=RefundStatus.PENDING,
        nullable=False,
    )
    processing_path: Mapped[ProcessingPath] = mapped_column(
        Enum(ProcessingPath, name="processing_path", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )

    transaction_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)  # Stripe refund id
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    processed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_refunds_booking", "booking_id"),)

    def __repr__(self) -> str:
        return f"<Refund {self.transaction_id} {self.status} {self.amount_minor} {self.currency}>"
