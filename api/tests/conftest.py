"""Shared test fixtures.

Tests run against a throwaway SQLite file through aiosqlite. The URL is set
before the settlement package is imported, because the engine is created at
import time.
"""

import os
import tempfile
from datetime import UTC, date, datetime
from decimal import Decimal
from itertools import count
from unittest.mock import AsyncMock, MagicMock

_DB_PATH = os.path.join(tempfile.gettempdir(), f"settlement-test-{os.getpid()}.db")
os.environ.setdefault("BS_DATABASE_URL", f"sqlite+aiosqlite:///{_DB_PATH}")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from settlement.core.database import async_session_factory, engine  # noqa: E402
from settlement.core.locks import BookingLocks  # noqa: E402
from settlement.main import app  # noqa: E402
from settlement.models import Base, Booking, BookingStatus, Payment, PaymentStatus  # noqa: E402
from settlement.models.payment import RefundStatus  # noqa: E402
from settlement.services.commission import CommissionLedger  # noqa: E402
from settlement.services.email import EmailNotifier  # noqa: E402
from settlement.services.review_queue import ManualReviewQueue  # noqa: E402
from settlement.services.settlement import SettlementCoordinator  # noqa: E402
from settlement.services.stripe_service import GatewayRefund  # noqa: E402

# Check-in dates are midnight UTC, so from here 2026-06-03 is 42h away and 2026-06-02 is 18h away
NOW = datetime(2026, 6, 1, 6, 0, tzinfo=UTC)

_refund_ids = count(1)


@pytest.fixture
async def db_schema():
    """Fresh tables for every database test.

    The global engine is created at import time. Disposing it first drops any
    pooled connections bound to a previous test's event loop.
    """
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
def gateway():
    """Gateway double that refunds whatever it is asked to, successfully."""

    async def create_refund(transaction_id, amount_minor, reason, metadata, idempotency_key):
        return GatewayRefund(
            id=f"re_test_{next(_refund_ids)}",
            amount_minor=amount_minor,
            currency="USD",
            status=RefundStatus.COMPLETED,
        )

    return MagicMock(create_refund=AsyncMock(side_effect=create_refund))


@pytest.fixture
def notifier():
    return MagicMock(spec=EmailNotifier)


@pytest.fixture
def coordinator(db_schema, gateway, notifier):
    return SettlementCoordinator(
        async_session_factory,
        gateway,
        BookingLocks(),
        ledger=CommissionLedger(),
        notifier=notifier,
        clock=lambda: NOW,
    )


@pytest.fixture
def review_queue(coordinator):
    return ManualReviewQueue(coordinator)


@pytest.fixture
async def make_booking(db_schema):
    """Factory: a booking with a completed payment and an earned 5% commission.

    Returns the booking id. Pass `payment_status=None` for a booking with no
    payment at all.
    """
    numbers = count(1)

    async def _make(
        *,
        total_amount_minor: int = 20000,
        currency: str = "USD",
        check_in: date = date(2026, 6, 3),
        status: BookingStatus = BookingStatus.CONFIRMED,
        is_cancellable: bool = True,
        cancellation_deadline: datetime | None = None,
        payment_status: PaymentStatus | None = PaymentStatus.COMPLETED,
        with_commission: bool = True,
    ) -> int:
        async with async_session_factory() as db:
            booking = Booking(
                confirmation_number=f"BK-{next(numbers):05d}",
                guest_name="Ada Guest",
                guest_email="ada@example.com",
                hotel_name="Harbour Hotel",
                check_in=check_in,
                check_out=date.fromordinal(check_in.toordinal() + 2),
                total_amount_minor=total_amount_minor,
                currency=currency,
                status=status,
                is_cancellable=is_cancellable,
                cancellation_deadline=cancellation_deadline,
            )
            db.add(booking)
            await db.flush()

            if payment_status is not None:
                payment = Payment(
                    booking_id=booking.id,
                    amount_minor=total_amount_minor,
                    currency=currency,
                    status=payment_status,
                    transaction_id=f"pi_test_{booking.id}",
                )
                db.add(payment)
                await db.flush()
                if with_commission:
                    await CommissionLedger().record_commission(
                        db, booking.id, payment.id, total_amount_minor, currency, Decimal("0.05")
                    )

            await db.commit()
            return booking.id

    return _make


@pytest.fixture
async def client(coordinator, review_queue):
    """HTTP client with the test coordinator installed on the app.

    ASGITransport does not run the lifespan, so app.state is set directly.
    """
    app.state.coordinator = coordinator
    app.state.review_queue = review_queue
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
