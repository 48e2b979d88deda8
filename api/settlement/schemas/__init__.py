"""Pydantic schemas for API serialisation.

Money crosses the API in major units (Decimal, e.g. "194.00"); everything
behind it works in integer minor units.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from settlement.models.payment import ProcessingPath, Refund, RefundStatus
from settlement.models.refund_request import RefundRequest, RefundRequestStatus
from settlement.services.refund_calculator import RefundCalculation, to_major
from settlement.services.refund_queries import RefundStatistics
from settlement.services.settlement import AutomaticSettlement, ManualReviewSettlement, RefundReceipt

# --- Requests ---


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    requested_by: str = Field(min_length=1, max_length=64)
    notes: str | None = Field(default=None, max_length=2000)
    override: bool = False


class ApproveRequest(BaseModel):
    approved_by: str = Field(min_length=1, max_length=64)
    approved_amount: Decimal | None = Field(default=None, gt=0)
    admin_notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    rejected_by: str = Field(min_length=1, max_length=64)
    reason: str = Field(min_length=1, max_length=500)


# --- Calculation ---


class RefundCalculationOut(BaseModel):
    currency: str
    original_amount: Decimal
    refundable_amount: Decimal
    cancellation_fee: Decimal
    processing_fee: Decimal
    final_refund_amount: Decimal
    is_eligible: bool
    reason: str
    hours_until_check_in: int

    @classmethod
    def from_calculation(cls, calc: RefundCalculation) -> "RefundCalculationOut":
        cur = calc.currency
        return cls(
            currency=cur,
            original_amount=to_major(calc.original_amount, cur),
            refundable_amount=to_major(calc.refundable_amount, cur),
            cancellation_fee=to_major(calc.cancellation_fee, cur),
            processing_fee=to_major(calc.processing_fee, cur),
            final_refund_amount=to_major(calc.final_refund_amount, cur),
            is_eligible=calc.is_eligible,
            reason=calc.reason,
            hours_until_check_in=calc.hours_until_check_in,
        )


# --- Settlement results ---


class RefundReceiptOut(BaseModel):
    id: int
    transaction_id: str
    amount: Decimal
    currency: str
    status: RefundStatus

    @classmethod
    def from_receipt(cls, receipt: RefundReceipt) -> "RefundReceiptOut":
        return cls(
            id=receipt.id,
            transaction_id=receipt.transaction_id,
            amount=to_major(receipt.amount_minor, receipt.currency),
            currency=receipt.currency,
            status=receipt.status,
        )


class AutomaticSettlementOut(BaseModel):
    path: Literal["automatic"] = "automatic"
    refund: RefundReceiptOut
    calculation: RefundCalculationOut

    @classmethod
    def from_result(cls, result: AutomaticSettlement) -> "AutomaticSettlementOut":
        return cls(
            refund=RefundReceiptOut.from_receipt(result.refund),
            calculation=RefundCalculationOut.from_calculation(result.calculation),
        )


class ManualReviewSettlementOut(BaseModel):
    path: Literal["manual_review"] = "manual_review"
    request_id: int
    status: Literal["pending_review"] = "pending_review"
    calculation: RefundCalculationOut

    @classmethod
    def from_result(cls, result: ManualReviewSettlement) -> "ManualReviewSettlementOut":
        return cls(
            request_id=result.request_id,
            calculation=RefundCalculationOut.from_calculation(result.calculation),
        )


# --- Records ---


class RefundOut(BaseModel):
    id: int
    booking_id: int
    payment_id: int
    refund_request_id: int | None
    amount: Decimal
    currency: str
    status: RefundStatus
    processing_path: ProcessingPath
    transaction_id: str
    reason: str
    processed_by: str
    processed_at: datetime

    @classmethod
    def from_refund(cls, refund: Refund) -> "RefundOut":
        return cls(
            id=refund.id,
            booking_id=refund.booking_id,
            payment_id=refund.payment_id,
            refund_request_id=refund.refund_request_id,
            amount=to_major(refund.amount_minor, refund.currency),
            currency=refund.currency,
            status=refund.status,
            processing_path=refund.processing_path,
            transaction_id=refund.transaction_id,
            reason=refund.reason,
            processed_by=refund.processed_by,
            processed_at=refund.processed_at,
        )


class RefundRequestOut(BaseModel):
    id: int
    booking_id: int
    payment_id: int | None
    requested_by: str
    amount: Decimal
    currency: str
    reason: str
    notes: str | None
    status: RefundRequestStatus
    calculation: RefundCalculationOut
    admin_notes: str | None
    processed_by: str | None
    processed_at: datetime | None
    created_at: datetime

    @classmethod
    def from_request(cls, request: RefundRequest) -> "RefundRequestOut":
        return cls(
            id=request.id,
            booking_id=request.booking_id,
            payment_id=request.payment_id,
            requested_by=request.requested_by,
            amount=to_major(request.amount_minor, request.currency),
            currency=request.currency,
            reason=request.reason,
            notes=request.notes,
            status=request.status,
            calculation=RefundCalculationOut.from_calculation(RefundCalculation.from_payload(request.calculation)),
            admin_notes=request.admin_notes,
            processed_by=request.processed_by,
            processed_at=request.processed_at,
            created_at=request.created_at,
        )


class RefundStatisticsOut(BaseModel):
    currency: str
    total_refunds: int
    total_refund_amount: Decimal
    automatic_refunds: int
    manual_refunds: int
    average_refund_amount: Decimal

    @classmethod
    def from_stats(cls, stats: RefundStatistics) -> "RefundStatisticsOut":
        cur = stats.currency
        return cls(
            currency=cur,
            total_refunds=stats.total_refunds,
            total_refund_amount=to_major(stats.total_refund_amount_minor, cur),
            automatic_refunds=stats.automatic_refunds,
            manual_refunds=stats.manual_refunds,
            average_refund_amount=to_major(stats.average_refund_amount_minor, cur),
        )
