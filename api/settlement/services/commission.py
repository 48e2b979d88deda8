"""Commission ledger.

One Commission row per payment records the platform's cut. Refunds reverse
it in proportion to the amount refunded. All mutations go through this
service and lock the commission row first.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.commission import Commission, CommissionStatus
from settlement.services.errors import LedgerFailure

logger = logging.getLogger(__name__)


def _reversal_amount(commission: Commission, refunded_minor: int) -> int:
    """Share of the commission matching the refunded share of the base amount."""
    outstanding = commission.commission_amount_minor - commission.reversed_amount_minor
    if refunded_minor >= commission.base_amount_minor:
        return outstanding
    share = Decimal(commission.commission_amount_minor) * refunded_minor / commission.base_amount_minor
    return min(outstanding, int(share.quantize(Decimal(1), rounding=ROUND_HALF_UP)))


class CommissionLedger:
    async def record_commission(
        self,
        db: AsyncSession,
        booking_id: int,
        payment_id: int,
        base_amount_minor: int,
        currency: str,
        rate: Decimal,
    ) -> Commission:
        """Record the commission earned on a completed payment."""
        amount = int((base_amount_minor * Decimal(rate)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        commission = Commission(
            booking_id=booking_id,
            payment_id=payment_id,
            base_amount_minor=base_amount_minor,
            commission_rate=Decimal(rate),
            commission_amount_minor=amount,
            currency=currency,
            status=CommissionStatus.EARNED,
        )
        db.add(commission)
        await db.flush()
        return commission

    async def reverse_commission(self, db: AsyncSession, payment_id: int, refunded_minor: int) -> Commission:
        """Reverse commission for a refund of `refunded_minor` against `payment_id`.

        Uses SELECT ... FOR UPDATE on the commission row. Raises LedgerFailure
        when there is nothing to reverse against.
        """
        result = await db.execute(
            select(Commission).where(Commission.payment_id == payment_id).with_for_update()
        )
        commission = result.scalar_one_or_none()
        if commission is None:
            raise LedgerFailure(f"No commission recorded for payment #{payment_id}")

        reversal = _reversal_amount(commission, refunded_minor)
        commission.reversed_amount_minor += reversal
        commission.status = CommissionStatus.REVERSED
        await db.flush()

        logger.info(
            "Commission reversed",
            extra={
                "payment_id": payment_id,
                "refunded_minor": refunded_minor,
                "reversal_minor": reversal,
                "commission_minor": commission.commission_amount_minor,
            },
        )
        return commission
