"""Operator routes: the manual refund review queue and refund statistics."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.database import get_db
from settlement.core.dependencies import get_review_queue
from settlement.models.refund_request import RefundRequest, RefundRequestStatus
from settlement.schemas import (
    ApproveRequest,
    AutomaticSettlementOut,
    RefundRequestOut,
    RefundStatisticsOut,
    RejectRequest,
)
from settlement.services.errors import RequestNotFound
from settlement.services.refund_calculator import to_minor
from settlement.services.refund_queries import refund_statistics
from settlement.services.review_queue import ManualReviewQueue

router = APIRouter(tags=["refunds"])


@router.get("/refund-requests", response_model=list[RefundRequestOut])
async def list_refund_requests(
    request_status: RefundRequestStatus = Query(RefundRequestStatus.PENDING, alias="status"),
    queue: ManualReviewQueue = Depends(get_review_queue),
):
    return [RefundRequestOut.from_request(r) for r in await queue.list_requests(request_status)]


@router.post("/refund-requests/{request_id}/approve", response_model=AutomaticSettlementOut)
async def approve_refund_request(
    request_id: int,
    body: ApproveRequest,
    db: AsyncSession = Depends(get_db),
    queue: ManualReviewQueue = Depends(get_review_queue),
):
    approved_amount_minor = None
    if body.approved_amount is not None:
        refund_request = await db.get(RefundRequest, request_id)
        if refund_request is None:
            raise RequestNotFound(f"Refund request #{request_id} not found")
        approved_amount_minor = to_minor(body.approved_amount, refund_request.currency)

    result = await queue.approve(
        request_id,
        approved_by=body.approved_by,
        approved_amount_minor=approved_amount_minor,
        admin_notes=body.admin_notes,
    )
    return AutomaticSettlementOut.from_result(result)


@router.post("/refund-requests/{request_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
async def reject_refund_request(
    request_id: int,
    body: RejectRequest,
    queue: ManualReviewQueue = Depends(get_review_queue),
):
    await queue.reject(request_id, rejected_by=body.rejected_by, reason=body.reason)


@router.get("/refunds/statistics", response_model=list[RefundStatisticsOut])
async def get_refund_statistics(
    start: datetime,
    end: datetime,
    db: AsyncSession = Depends(get_db),
):
    return [RefundStatisticsOut.from_stats(s) for s in await refund_statistics(db, start, end)]
