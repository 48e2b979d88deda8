"""Commission ledger and reconciliation models."""

import enum
from decimal import Decimal

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base, TimestampMixin


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    EARNED = "earned"
    PAID = "paid"
    REVERSED = "reversed"


class Commission(TimestampMixin, Base):
    """Platform commission taken on one payment."""

    __tablename__ = "commissions"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    payment_id: Mapped[int] = mapped_column(ForeignKey("payments.id"), unique=True, nullable=False)

    base_amount_minor: Mapped[int] = mapped_column(nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    commission_amount_minor: Mapped[int] = mapped_column(nullable=False)
    reversed_amount_minor: Mapped[int] = mapped_column(default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[CommissionStatus] = mapped_column(
        Enum(CommissionStatus, name="commission_status", values_callable=lambda e: [x.value for x in e]),
        default=CommissionStatus.PENDING,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Commission payment={self.payment_id} {self.commission_amount_minor} {self.status}>"


class ReconciliationKind(str, enum.Enum):
    LEDGER_FAILURE = "ledger_failure"
    REFUND_FAILED = "refund_failed"
    COMMIT_FAILURE = "commit_failure"


class ReconciliationItem(TimestampMixin, Base):
    """Money moved at the gateway but local bookkeeping did not follow.

    Never rolled back automatically; an operator resolves these by hand.
    """

    __tablename__ = "reconciliation_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    kind: Mapped[ReconciliationKind] = mapped_column(
        Enum(ReconciliationKind, name="reconciliation_kind", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    payment_id: Mapped[int | None] = mapped_column(ForeignKey("payments.id"))
    refund_transaction_id: Mapped[str | None] = mapped_column(String(255))
    amount_minor: Mapped[int] = mapped_column(default=0, nullable=False)
    detail: Mapped[str] = mapped_column(Text, nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (Index("ix_reconciliation_unresolved", "resolved", "created_at"),)

    def __repr__(self) -> str:
        return f"<ReconciliationItem {self.kind} booking={self.booking_id} resolved={self.resolved}>"
