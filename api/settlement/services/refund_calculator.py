"""Refund calculation for cancelled bookings.

Pure calculation module: no database, no async, no FastAPI dependencies.
All money is integer minor units of the booking currency. Fractional minor
units only appear from percentage rules, and each such figure is rounded
half-up exactly once.

Tiers, by whole hours until check-in (check-in is midnight UTC of the date):
  >= 24h   full refund
  12-24h   50% refund, 50% cancellation fee
  0-12h    no refund
  < 0      check-in passed, no refund
A 3% processing fee, capped at 25 major units, comes off any refund.
"""

import enum
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from settlement.models.booking import Booking, BookingStatus

FULL_REFUND_HOURS = 24
PARTIAL_REFUND_HOURS = 12
PARTIAL_REFUND_RATE = Decimal("0.5")
PROCESSING_FEE_RATE = Decimal("0.03")
PROCESSING_FEE_CAP = 25  # major units
DEFAULT_DEADLINE_BEFORE_CHECK_IN = timedelta(hours=24)

# ISO 4217 currencies without a minor unit (Stripe's zero-decimal list)
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)


class RefundReason(str, enum.Enum):
    FULL_REFUND = "full refund"
    PARTIAL_REFUND = "partial refund"
    SAME_DAY = "same-day, no refund"
    CHECK_IN_PASSED = "check-in passed"
    NOT_ELIGIBLE = "not eligible"
    DEADLINE_PASSED = "deadline passed"


@dataclass(frozen=True)
class RefundCalculation:
    currency: str
    original_amount: int
    refundable_amount: int
    cancellation_fee: int
    processing_fee: int
    final_refund_amount: int
    is_eligible: bool
    reason: str
    hours_until_check_in: int

    def to_payload(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> "RefundCalculation":
        return cls(**{name: payload[name] for name in cls.__dataclass_fields__})


# ---------------------------------------------------------------------------
# Money helpers
# ---------------------------------------------------------------------------


def minor_unit_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_major(amount_minor: int, currency: str) -> Decimal:
    """120050 USD -> Decimal("1200.50"); 1200 JPY -> Decimal("1200")."""
    exponent = minor_unit_exponent(currency)
    return Decimal(amount_minor).scaleb(-exponent).quantize(Decimal(1).scaleb(-exponent))


def to_minor(amount: Decimal, currency: str) -> int:
    exponent = minor_unit_exponent(currency)
    return int(Decimal(amount).scaleb(exponent).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def check_in_at(booking: Booking) -> datetime:
    return datetime.combine(booking.check_in, time.min, tzinfo=UTC)


def cancellation_deadline(booking: Booking) -> datetime:
    if booking.cancellation_deadline is not None:
        return ensure_utc(booking.cancellation_deadline)
    return check_in_at(booking) - DEFAULT_DEADLINE_BEFORE_CHECK_IN


# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------


def processing_fee_for(refundable_minor: int, currency: str) -> int:
    """3% of the refundable amount, capped at 25 major units."""
    cap = PROCESSING_FEE_CAP * 10 ** minor_unit_exponent(currency)
    return min(_round_half_up(refundable_minor * PROCESSING_FEE_RATE), cap)


def calculate_refund(booking: Booking, now: datetime) -> RefundCalculation:
    """Compute the refund a booking is entitled to if cancelled at `now`.

    Deterministic in (booking, now). The booking status and cancellability
    decide base eligibility; the deadline and the hours left before check-in
    decide the tier.
    """
    now = ensure_utc(now)
    original = booking.total_amount_minor
    hours_until_check_in = (check_in_at(booking) - now) // timedelta(hours=1)

    refundable = 0
    is_eligible = booking.is_cancellable and booking.status == BookingStatus.CONFIRMED

    if not is_eligible:
        reason = RefundReason.NOT_ELIGIBLE
    elif now > cancellation_deadline(booking):
        is_eligible = False
        reason = RefundReason.DEADLINE_PASSED
    elif hours_until_check_in >= FULL_REFUND_HOURS:
        refundable = original
        reason = RefundReason.FULL_REFUND
    elif hours_until_check_in >= PARTIAL_REFUND_HOURS:
        refundable = _round_half_up(original * PARTIAL_REFUND_RATE)
        reason = RefundReason.PARTIAL_REFUND
    elif hours_until_check_in >= 0:
        is_eligible = False
        reason = RefundReason.SAME_DAY
    else:
        is_eligible = False
        reason = RefundReason.CHECK_IN_PASSED

    processing_fee = processing_fee_for(refundable, booking.currency)

    return RefundCalculation(
        currency=booking.currency,
        original_amount=original,
        refundable_amount=refundable,
        cancellation_fee=original - refundable,
        processing_fee=processing_fee,
        final_refund_amount=max(0, refundable - processing_fee),
        is_eligible=is_eligible,
        reason=reason.value,
        hours_until_check_in=hours_until_check_in,
    )
