"""Booking model.

A confirmed hotel booking as seen by the settlement engine. Pricing happens
upstream; by the time a booking reaches this service its total is fixed.
"""

import enum
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    CANCELLED = "cancelled"
    CANCELLED_PENDING_REFUND = "cancelled_pending_refund"  # cancelled, gateway refund not yet final


CANCELLED_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.CANCELLED_PENDING_REFUND})


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    confirmation_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # Guest
    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(254), nullable=False)
    hotel_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Stay
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)

    # Money, in minor units of `currency`
    total_amount_minor: Mapped[int] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=lambda e: [x.value for x in e]),
        default=BookingStatus.PENDING,
        nullable=False,
    )

    # Cancellation policy, fixed by the rate at booking time
    is_cancellable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    cancellation_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("ix_bookings_status_check_in", "status", "check_in"),)

    @property
    def is_cancelled(self) -> bool:
        return self.status in CANCELLED_STATUSES

    def __repr__(self) -> str:
        return f"<Booking {self.confirmation_number} {self.status} {self.check_in}>"
