"""Seed the database with settlement test data.

Run with: python -m scripts.seed
Creates a handful of hotel bookings across the refund tiers, each with a
completed payment and the commission earned on it.
"""

import asyncio
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import select

from settlement.core.config import settings
from settlement.core.database import async_session_factory, engine
from settlement.models import Base, Booking, BookingStatus, Payment, PaymentStatus
from settlement.services.commission import CommissionLedger

# (confirmation number, guest, hotel, days until check-in, nights, total in minor units, currency)
# Days are counted from today, so the tier each booking lands in depends on when you seed.
BOOKINGS = [
    ("BK-10001", "Ada Lovelace", "Harbour Hotel", 14, 3, 60000, "USD"),
    ("BK-10002", "Grace Hopper", "Harbour Hotel", 3, 2, 20000, "USD"),
    ("BK-10003", "Alan Turing", "Old Mill Inn", 1, 1, 30000, "GBP"),
    ("BK-10004", "Edsger Dijkstra", "Canal House", 0, 2, 10000, "EUR"),
    ("BK-10005", "Yukihiro Matsumoto", "Shinjuku Tower", 10, 4, 88000, "JPY"),
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    ledger = CommissionLedger()
    rate = Decimal(str(settings.default_commission_rate))
    today = date.today()

    async with async_session_factory() as db:
        result = await db.execute(select(Booking.confirmation_number))
        existing = set(result.scalars().all())

        created = 0
        for number, guest, hotel, days_out, nights, total, currency in BOOKINGS:
            if number in existing:
                continue

            check_in = today + timedelta(days=days_out)
            booking = Booking(
                confirmation_number=number,
                guest_name=guest,
                guest_email=f"{guest.split()[0].lower()}@example.com",
                hotel_name=hotel,
                check_in=check_in,
                check_out=check_in + timedelta(days=nights),
                total_amount_minor=total,
                currency=currency,
                status=BookingStatus.CONFIRMED,
                is_cancellable=True,
                # Deadline at check-in so every tier can be exercised
                cancellation_deadline=datetime.combine(check_in, time.min, tzinfo=UTC),
            )
            db.add(booking)
            await db.flush()

            payment = Payment(
                booking_id=booking.id,
                amount_minor=total,
                currency=currency,
                status=PaymentStatus.COMPLETED,
                transaction_id=f"pi_seed_{number.lower()}",
            )
            db.add(payment)
            await db.flush()

            await ledger.record_commission(db, booking.id, payment.id, total, currency, rate)
            created += 1

        await db.commit()

    print(f"Seeded {created} bookings ({len(BOOKINGS) - created} already present)")
    print(f"  commission rate: {rate:%}")


if __name__ == "__main__":
    asyncio.run(seed())
