"""Settlement coordinator: cancels a booking and settles its refund.

The gateway refund call is the commit point. Before it, every failure rolls
back and leaves the booking confirmed. After it, money has moved and cannot
be unmoved, so later failures (ledger, notifications) are logged and
recorded for reconciliation instead of being raised.

Two cancellations of the same booking are serialised twice over: by the
per-booking lock inside this process, and by the conditional
`UPDATE ... WHERE status = 'confirmed'` that claims the booking in the same
transaction that later records the refund. A claim that touches no row
means someone else already cancelled.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.core.config import settings
from settlement.core.locks import BookingLocks
from settlement.models.base import utcnow
from settlement.models.booking import Booking, BookingStatus
from settlement.models.commission import ReconciliationItem, ReconciliationKind
from settlement.models.payment import Payment, PaymentStatus, ProcessingPath, Refund, RefundStatus
from settlement.models.refund_request import RefundRequest, RefundRequestStatus
from settlement.services.commission import CommissionLedger
from settlement.services.email import EmailNotifier
from settlement.services.errors import (
    AlreadyCancelled,
    GatewayRejected,
    InvalidAmount,
    InvalidState,
    LedgerFailure,
    NoCompletedPayment,
    NotEligible,
    NotificationFailure,
    NotFound,
    RequestNotFound,
    SettlementError,
)
from settlement.services.refund_calculator import RefundCalculation, calculate_refund, to_major
from settlement.services.refund_policy import SettlementPath, route
from settlement.services.stripe_service import GatewayRefund, refund_idempotency_key

logger = logging.getLogger(__name__)

PENDING_REVIEW = "pending_review"


class PaymentGateway(Protocol):
    async def create_refund(
        self,
        transaction_id: str,
        amount_minor: int,
        reason: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> GatewayRefund: ...


@dataclass(frozen=True)
class RefundReceipt:
    id: int
    transaction_id: str
    amount_minor: int
    currency: str
    status: RefundStatus


@dataclass(frozen=True)
class AutomaticSettlement:
    refund: RefundReceipt
    calculation: RefundCalculation
    path: SettlementPath = SettlementPath.AUTOMATIC


@dataclass(frozen=True)
class ManualReviewSettlement:
    request_id: int
    calculation: RefundCalculation
    status: str = PENDING_REVIEW
    path: SettlementPath = SettlementPath.MANUAL_REVIEW


SettlementResult = AutomaticSettlement | ManualReviewSettlement


class SettlementCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGateway,
        locks: BookingLocks,
        ledger: CommissionLedger | None = None,
        notifier: EmailNotifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.locks = locks
        self.ledger = ledger or CommissionLedger()
        self.notifier = notifier or EmailNotifier()
        self.clock = clock

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def cancel(
        self,
        booking_id: int,
        reason: str,
        requested_by: str,
        notes: str | None = None,
        override: bool = False,
    ) -> SettlementResult:
        """Cancel a confirmed booking and refund it, or queue it for review.

        `override` lets an ineligible cancellation through to manual review
        instead of failing with NotEligible.
        """
        async with self.locks.hold(booking_id), self.session_factory() as db:
            booking = await self._load_booking(db, booking_id)
            _check_confirmed(booking)

            calc = calculate_refund(booking, self.clock())
            if not calc.is_eligible and not override:
                raise NotEligible(f"Booking {booking.confirmation_number} is not refundable: {calc.reason}", calc)

            path = route(calc)
            logger.info(
                "Cancellation accepted",
                extra={"booking_id": booking_id, "path": path.value, "reason": calc.reason, "override": override},
            )

            if path is SettlementPath.AUTOMATIC:
                payment = await self._completed_payment(db, booking_id)
                if payment is None:
                    raise NoCompletedPayment(f"No completed payment for booking #{booking_id}", calc)
                return await self._settle(
                    db,
                    booking,
                    payment,
                    amount_minor=calc.final_refund_amount,
                    calc=calc,
                    reason=reason,
                    processed_by=requested_by,
                    processing_path=ProcessingPath.AUTOMATIC,
                    notes=notes,
                )

            return await self._queue_for_review(db, booking, calc, reason, requested_by, notes)

    async def settle_request(
        self,
        request_id: int,
        approved_by: str,
        approved_amount_minor: int | None = None,
        admin_notes: str | None = None,
    ) -> AutomaticSettlement:
        """Refund an approved RefundRequest, re-validating the booking first."""
        async with self.session_factory() as db:
            booking_id = await db.scalar(select(RefundRequest.booking_id).where(RefundRequest.id == request_id))
        if booking_id is None:
            raise RequestNotFound(f"Refund request #{request_id} not found")

        async with self.locks.hold(booking_id), self.session_factory() as db:
            request = await db.get(RefundRequest, request_id)
            if request is None:
                raise RequestNotFound(f"Refund request #{request_id} not found")
            calc = RefundCalculation.from_payload(request.calculation)
            if request.status != RefundRequestStatus.PENDING:
                raise InvalidState(f"Refund request #{request_id} is {request.status.value}, not pending", calc)

            booking = await self._load_booking(db, booking_id)
            _check_confirmed(booking)

            payment = await self._completed_payment(db, booking_id)
            if payment is None:
                raise NoCompletedPayment(f"No completed payment for booking #{booking_id}", calc)

            amount = request.amount_minor if approved_amount_minor is None else approved_amount_minor
            if amount <= 0 or amount > payment.amount_minor:
                raise InvalidAmount(
                    f"Refund amount must be between 0 and {to_major(payment.amount_minor, payment.currency)} "
                    f"{payment.currency}",
                    calc,
                )

            request.status = RefundRequestStatus.APPROVED
            request.processed_by = approved_by
            request.processed_at = self.clock()
            request.admin_notes = admin_notes

            logger.info(
                "Refund request approved",
                extra={"request_id": request_id, "booking_id": booking_id, "amount_minor": amount},
            )
            return await self._settle(
                db,
                booking,
                payment,
                amount_minor=amount,
                calc=calc,
                reason=request.reason,
                processed_by=approved_by,
                processing_path=ProcessingPath.MANUAL,
                notes=request.notes,
                request=request,
            )

    async def apply_refund_update(self, transaction_id: str, status: RefundStatus) -> Refund | None:
        """Apply a later status report from the gateway to a Refund."""
        async with self.session_factory() as db:
            refund = await db.scalar(select(Refund).where(Refund.transaction_id == transaction_id))
            if refund is None:
                logger.error("Refund update for unknown refund", extra={"transaction_id": transaction_id})
                return None

            previous = refund.status
            refund.status = status
            if status is RefundStatus.COMPLETED:
                await db.execute(
                    update(Booking)
                    .where(Booking.id == refund.booking_id, Booking.status == BookingStatus.CANCELLED_PENDING_REFUND)
                    .values(status=BookingStatus.CANCELLED)
                    .execution_options(synchronize_session=False)
                )
            elif status is RefundStatus.FAILED and previous is not RefundStatus.FAILED:
                db.add(
                    ReconciliationItem(
                        kind=ReconciliationKind.REFUND_FAILED,
                        booking_id=refund.booking_id,
                        payment_id=refund.payment_id,
                        refund_transaction_id=transaction_id,
                        amount_minor=refund.amount_minor,
                        detail="Gateway reported the refund as failed after the booking was cancelled",
                    )
                )
                logger.error("Refund failed at gateway", extra={"transaction_id": transaction_id})
            await db.commit()
            return refund

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def _settle(
        self,
        db: AsyncSession,
        booking: Booking,
        payment: Payment,
        *,
        amount_minor: int,
        calc: RefundCalculation,
        reason: str,
        processed_by: str,
        processing_path: ProcessingPath,
        notes: str | None = None,
        request: RefundRequest | None = None,
    ) -> AutomaticSettlement:
        now = self.clock()
        # Rollbacks expire ORM state, so keep what the error paths need
        booking_id = booking.id
        confirmation_number = booking.confirmation_number
        payment_id = payment.id

        claim = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BookingStatus.CONFIRMED)
            .values(status=BookingStatus.CANCELLED, cancelled_at=now, cancellation_reason=reason)
            .execution_options(synchronize_session=False)
        )
        if claim.rowcount != 1:
            await db.rollback()
            logger.warning("Lost cancellation race", extra={"booking_id": booking_id})
            raise AlreadyCancelled(f"Booking {confirmation_number} is already cancelled", calc)

        try:
            gateway_refund = await self.gateway.create_refund(
                payment.transaction_id,
                amount_minor,
                settings.stripe_refund_reason,
                _gateway_metadata(booking, calc, reason, processed_by, processing_path, notes),
                refund_idempotency_key(booking_id, payment_id, amount_minor),
            )
        except SettlementError as exc:
            await db.rollback()
            exc.calculation = exc.calculation or calc
            logger.warning(
                "Refund not issued, booking left confirmed",
                extra={"booking_id": booking_id, "error": exc.kind.value},
            )
            raise

        if gateway_refund.status is RefundStatus.FAILED:
            await db.rollback()
            raise GatewayRejected(f"Payment provider declined refund {gateway_refund.id}", calc)

        # Past the commit point: the gateway has refunded the guest
        await db.refresh(booking)
        if gateway_refund.status is RefundStatus.PENDING:
            booking.status = BookingStatus.CANCELLED_PENDING_REFUND

        refund = Refund(
            payment_id=payment_id,
            booking_id=booking_id,
            refund_request_id=request.id if request else None,
            amount_minor=gateway_refund.amount_minor,
            currency=gateway_refund.currency,
            status=gateway_refund.status,
            processing_path=processing_path,
            transaction_id=gateway_refund.id,
            reason=reason,
            processed_by=processed_by,
            processed_at=now,
        )
        db.add(refund)
        if request is not None:
            request.status = RefundRequestStatus.COMPLETED

        try:
            await db.commit()
        except SQLAlchemyError:
            logger.critical(
                "Refund issued but settlement could not be recorded",
                exc_info=True,
                extra={"booking_id": booking_id, "refund_transaction_id": gateway_refund.id},
            )
            await self._record_reconciliation(
                ReconciliationKind.COMMIT_FAILURE,
                booking_id,
                payment_id,
                gateway_refund,
                "Gateway refund succeeded but booking/refund rows were not committed",
            )
            raise

        receipt = RefundReceipt(
            id=refund.id,
            transaction_id=refund.transaction_id,
            amount_minor=refund.amount_minor,
            currency=refund.currency,
            status=refund.status,
        )
        logger.info(
            "Refund issued",
            extra={
                "booking_id": booking_id,
                "refund_transaction_id": receipt.transaction_id,
                "amount_minor": receipt.amount_minor,
                "path": processing_path.value,
            },
        )

        await self._reverse_commission(booking_id, payment_id, gateway_refund)

        await _best_effort(
            self.notifier.notify_guest_refund(booking, receipt.amount_minor, receipt.transaction_id, calc),
            "guest refund email",
            booking_id,
        )
        await _best_effort(
            self.notifier.notify_admin_refund(booking, receipt.amount_minor, receipt.transaction_id, calc),
            "admin refund email",
            booking_id,
        )

        return AutomaticSettlement(refund=receipt, calculation=calc)

    async def _reverse_commission(self, booking_id: int, payment_id: int, gateway_refund: GatewayRefund) -> None:
        async with self.session_factory() as db:
            try:
                await self.ledger.reverse_commission(db, payment_id, gateway_refund.amount_minor)
                await db.commit()
                return
            except (LedgerFailure, SQLAlchemyError) as exc:
                await db.rollback()
                logger.error(
                    "Commission reversal failed, reconciliation required",
                    extra={"booking_id": booking_id, "payment_id": payment_id, "error": str(exc)},
                )
                detail = str(exc)

        await self._record_reconciliation(
            ReconciliationKind.LEDGER_FAILURE, booking_id, payment_id, gateway_refund, detail
        )

    async def _record_reconciliation(
        self,
        kind: ReconciliationKind,
        booking_id: int,
        payment_id: int,
        gateway_refund: GatewayRefund,
        detail: str,
    ) -> None:
        async with self.session_factory() as db:
            db.add(
                ReconciliationItem(
                    kind=kind,
                    booking_id=booking_id,
                    payment_id=payment_id,
                    refund_transaction_id=gateway_refund.id,
                    amount_minor=gateway_refund.amount_minor,
                    detail=detail,
                )
            )
            try:
                await db.commit()
            except SQLAlchemyError:
                logger.critical(
                    "Could not record reconciliation item",
                    exc_info=True,
                    extra={"booking_id": booking_id, "kind": kind.value, "detail": detail},
                )

    # ------------------------------------------------------------------
    # Manual review
    # ------------------------------------------------------------------

    async def _queue_for_review(
        self,
        db: AsyncSession,
        booking: Booking,
        calc: RefundCalculation,
        reason: str,
        requested_by: str,
        notes: str | None,
    ) -> ManualReviewSettlement:
        existing = await db.scalar(
            select(RefundRequest).where(
                RefundRequest.booking_id == booking.id,
                RefundRequest.status == RefundRequestStatus.PENDING,
            )
        )
        if existing is not None:
            return ManualReviewSettlement(
                request_id=existing.id, calculation=RefundCalculation.from_payload(existing.calculation)
            )

        payment = await self._completed_payment(db, booking.id)
        request = RefundRequest(
            booking_id=booking.id,
            payment_id=payment.id if payment else None,
            requested_by=requested_by,
            amount_minor=calc.refundable_amount,
            currency=calc.currency,
            reason=reason,
            notes=notes,
            status=RefundRequestStatus.PENDING,
            calculation=calc.to_payload(),
        )
        db.add(request)
        await db.commit()

        logger.info(
            "Refund request queued for review",
            extra={"booking_id": booking.id, "request_id": request.id, "amount_minor": request.amount_minor},
        )
        await _best_effort(
            self.notifier.notify_admin_refund_request(booking, request.id, requested_by, reason, calc),
            "admin refund request email",
            booking.id,
        )
        return ManualReviewSettlement(request_id=request.id, calculation=calc)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @staticmethod
    async def _load_booking(db: AsyncSession, booking_id: int) -> Booking:
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFound(f"Booking #{booking_id} not found")
        return booking

    @staticmethod
    async def _completed_payment(db: AsyncSession, booking_id: int) -> Payment | None:
        result = await db.execute(
            select(Payment)
            .where(Payment.booking_id == booking_id, Payment.status == PaymentStatus.COMPLETED)
            .order_by(Payment.id)
        )
        return result.scalars().first()


def _check_confirmed(booking: Booking) -> None:
    if booking.is_cancelled:
        raise AlreadyCancelled(f"Booking {booking.confirmation_number} is already cancelled")
    if booking.status != BookingStatus.CONFIRMED:
        raise InvalidState(f"Only confirmed bookings can be cancelled (booking is {booking.status.value})")


def _gateway_metadata(
    booking: Booking,
    calc: RefundCalculation,
    reason: str,
    processed_by: str,
    processing_path: ProcessingPath,
    notes: str | None,
) -> dict[str, str]:
    return {
        "booking_id": str(booking.id),
        "confirmation_number": booking.confirmation_number,
        "processing_path": processing_path.value,
        "processed_by": processed_by,
        "cancellation_reason": reason,
        "original_amount": str(calc.original_amount),
        "cancellation_fee": str(calc.cancellation_fee),
        "processing_fee": str(calc.processing_fee),
        "notes": notes or "",
    }


async def _best_effort(notification: Awaitable[None], what: str, booking_id: int) -> None:
    """Await a notification, logging a NotificationFailure instead of raising."""
    try:
        try:
            await notification
        except Exception as exc:
            raise NotificationFailure(f"{what} failed: {exc}") from exc
    except NotificationFailure as failure:
        logger.warning("Notification failed: %s", what, exc_info=failure, extra={"booking_id": booking_id})
