"""Booking routes: cancel with refund, refund quote, refund history."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.core.database import get_db
from settlement.core.dependencies import get_coordinator
from settlement.models.booking import Booking
from settlement.schemas import (
    AutomaticSettlementOut,
    CancelRequest,
    ManualReviewSettlementOut,
    RefundCalculationOut,
    RefundOut,
)
from settlement.services.errors import NotFound
from settlement.services.refund_queries import quote_refund, refund_history
from settlement.services.settlement import AutomaticSettlement, SettlementCoordinator

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "/{booking_id}/cancel",
    response_model=AutomaticSettlementOut | ManualReviewSettlementOut,
    responses={status.HTTP_202_ACCEPTED: {"model": ManualReviewSettlementOut}},
)
async def cancel_booking(
    booking_id: int,
    body: CancelRequest,
    response: Response,
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """Cancel a booking. 200 when refunded straight away, 202 when queued for review."""
    result = await coordinator.cancel(
        booking_id,
        reason=body.reason,
        requested_by=body.requested_by,
        notes=body.notes,
        override=body.override,
    )

    if isinstance(result, AutomaticSettlement):
        return AutomaticSettlementOut.from_result(result)

    response.status_code = status.HTTP_202_ACCEPTED
    return ManualReviewSettlementOut.from_result(result)


@router.get("/{booking_id}/refund-quote", response_model=RefundCalculationOut)
async def get_refund_quote(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    calc = await quote_refund(db, booking_id, coordinator.clock())
    return RefundCalculationOut.from_calculation(calc)


@router.get("/{booking_id}/refunds", response_model=list[RefundOut])
async def list_booking_refunds(booking_id: int, db: AsyncSession = Depends(get_db)):
    if await db.get(Booking, booking_id) is None:
        raise NotFound(f"Booking #{booking_id} not found")
    return [RefundOut.from_refund(r) for r in await refund_history(db, booking_id)]
