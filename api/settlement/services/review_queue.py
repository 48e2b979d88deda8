"""Manual review queue for refunds that don't qualify for automatic settlement.

Requests are created by the coordinator's manual path. An operator then
approves (which settles through the coordinator, re-validating everything)
or rejects (which touches only the request, never the booking).
"""

import logging

from sqlalchemy import select

from settlement.models.refund_request import RefundRequest, RefundRequestStatus
from settlement.services.errors import InvalidState, RequestNotFound
from settlement.services.refund_calculator import RefundCalculation
from settlement.services.settlement import AutomaticSettlement, SettlementCoordinator

logger = logging.getLogger(__name__)


class ManualReviewQueue:
    def __init__(self, coordinator: SettlementCoordinator):
        self.coordinator = coordinator

    async def list_requests(self, status: RefundRequestStatus = RefundRequestStatus.PENDING) -> list[RefundRequest]:
        """Requests in `status`, oldest first."""
        async with self.coordinator.session_factory() as db:
            result = await db.execute(
                select(RefundRequest)
                .where(RefundRequest.status == status)
                .order_by(RefundRequest.created_at, RefundRequest.id)
            )
            return list(result.scalars().all())

    async def approve(
        self,
        request_id: int,
        approved_by: str,
        approved_amount_minor: int | None = None,
        admin_notes: str | None = None,
    ) -> AutomaticSettlement:
        """Approve a pending request and issue its refund.

        Without `approved_amount_minor` the amount stored on the request is
        refunded.
        """
        return await self.coordinator.settle_request(
            request_id,
            approved_by,
            approved_amount_minor=approved_amount_minor,
            admin_notes=admin_notes,
        )

    async def reject(self, request_id: int, rejected_by: str, reason: str) -> None:
        session_factory = self.coordinator.session_factory
        async with session_factory() as db:
            booking_id = await db.scalar(select(RefundRequest.booking_id).where(RefundRequest.id == request_id))
        if booking_id is None:
            raise RequestNotFound(f"Refund request #{request_id} not found")

        # Same lock as approval, so a request can't be approved and rejected at once
        async with self.coordinator.locks.hold(booking_id), session_factory() as db:
            result = await db.execute(select(RefundRequest).where(RefundRequest.id == request_id).with_for_update())
            request = result.scalar_one()
            if request.status != RefundRequestStatus.PENDING:
                raise InvalidState(
                    f"Refund request #{request_id} is {request.status.value}, not pending",
                    RefundCalculation.from_payload(request.calculation),
                )

            request.status = RefundRequestStatus.REJECTED
            request.admin_notes = reason
            request.processed_by = rejected_by
            request.processed_at = self.coordinator.clock()
            await db.commit()

        logger.info("Refund request rejected", extra={"request_id": request_id, "booking_id": booking_id})
