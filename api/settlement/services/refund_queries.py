"""Read-only refund queries: quotes, history, statistics."""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.booking import Booking
from settlement.models.payment import ProcessingPath, Refund, RefundStatus
from settlement.services.errors import NotFound
from settlement.services.refund_calculator import RefundCalculation, calculate_refund


async def quote_refund(db: AsyncSession, booking_id: int, now: datetime) -> RefundCalculation:
    """What cancelling right now would refund. Takes no lock, changes nothing."""
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFound(f"Booking #{booking_id} not found")
    return calculate_refund(booking, now)


async def refund_history(db: AsyncSession, booking_id: int) -> list[Refund]:
    result = await db.execute(
        select(Refund).where(Refund.booking_id == booking_id).order_by(Refund.created_at, Refund.id)
    )
    return list(result.scalars().all())


@dataclass(frozen=True)
class RefundStatistics:
    currency: str
    total_refunds: int
    total_refund_amount_minor: int
    automatic_refunds: int
    manual_refunds: int
    average_refund_amount_minor: int


async def refund_statistics(db: AsyncSession, start: datetime, end: datetime) -> list[RefundStatistics]:
    """Per-currency totals over refunds created in [start, end).

    Failed refunds are excluded; no money left the platform for those.
    """
    result = await db.execute(
        select(
            Refund.currency,
            func.count(Refund.id),
            func.coalesce(func.sum(Refund.amount_minor), 0),
            func.count(Refund.id).filter(Refund.processing_path == ProcessingPath.AUTOMATIC),
            func.count(Refund.id).filter(Refund.processing_path == ProcessingPath.MANUAL),
        )
        .where(
            Refund.created_at >= start,
            Refund.created_at < end,
            Refund.status != RefundStatus.FAILED,
        )
        .group_by(Refund.currency)
        .order_by(Refund.currency)
    )

    stats = []
    for currency, count, total, automatic, manual in result.all():
        total = int(total)
        average = (Decimal(total) / count).quantize(Decimal(1), rounding=ROUND_HALF_UP) if count else Decimal(0)
        stats.append(
            RefundStatistics(
                currency=currency,
                total_refunds=count,
                total_refund_amount_minor=total,
                automatic_refunds=automatic,
                manual_refunds=manual,
                average_refund_amount_minor=int(average),
            )
        )
    return stats
