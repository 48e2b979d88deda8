"""Refund request model: cancellations waiting on an operator decision."""

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base, TimestampMixin


class RefundRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class RefundRequest(TimestampMixin, Base):
    __tablename__ = "refund_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    payment_id: Mapped[int | None] = mapped_column(ForeignKey("payments.id"))
    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)

    amount_minor: Mapped[int] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[RefundRequestStatus] = mapped_column(
        Enum(RefundRequestStatus, name="refund_request_status", values_callable=lambda e: [x.value for x in e]),
        default=RefundRequestStatus.PENDING,
        nullable=False,
    )

    # The calculation the operator reviews, frozen at request time
    calculation: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    # Operator decision
    admin_notes: Mapped[str | None] = mapped_column(Text)
    processed_by: Mapped[str | None] = mapped_column(String(64))
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_refund_requests_status", "status", "created_at"),
        Index("ix_refund_requests_booking", "booking_id"),
    )

    def __repr__(self) -> str:
        return f"<RefundRequest {self.id} booking={self.booking_id} {self.status}>"
