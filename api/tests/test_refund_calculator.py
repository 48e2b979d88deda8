"""Refund calculator: tiers, fees, rounding, money conservation."""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from settlement.models import Booking, BookingStatus
from settlement.services.refund_calculator import (
    RefundCalculation,
    RefundReason,
    calculate_refund,
    cancellation_deadline,
    processing_fee_for,
    to_major,
    to_minor,
)

CHECK_IN = date(2026, 6, 3)
CHECK_IN_AT = datetime(2026, 6, 3, tzinfo=UTC)


def _booking(total=20000, currency="USD", status=BookingStatus.CONFIRMED, cancellable=True, deadline=CHECK_IN_AT):
    return Booking(
        confirmation_number="BK-1",
        guest_name="Ada Guest",
        guest_email="ada@example.com",
        hotel_name="Harbour Hotel",
        check_in=CHECK_IN,
        check_out=date(2026, 6, 5),
        total_amount_minor=total,
        currency=currency,
        status=status,
        is_cancellable=cancellable,
        cancellation_deadline=deadline,
    )


def _hours_before(hours: float) -> datetime:
    return CHECK_IN_AT - timedelta(hours=hours)


def _assert_conserved(calc: RefundCalculation):
    assert calc.refundable_amount + calc.cancellation_fee == calc.original_amount
    assert 0 <= calc.final_refund_amount <= calc.refundable_amount <= calc.original_amount
    assert calc.processing_fee >= 0


# --- Scenarios ---


def test_full_refund_48h_before_check_in():
    calc = calculate_refund(_booking(total=20000), _hours_before(48))
    assert calc.is_eligible
    assert calc.reason == RefundReason.FULL_REFUND
    assert calc.hours_until_check_in == 48
    assert calc.refundable_amount == 20000
    assert calc.cancellation_fee == 0
    assert calc.processing_fee == 600
    assert calc.final_refund_amount == 19400
    _assert_conserved(calc)


def test_partial_refund_18h_before_check_in():
    calc = calculate_refund(_booking(total=30000), _hours_before(18))
    assert calc.is_eligible
    assert calc.reason == RefundReason.PARTIAL_REFUND
    assert calc.refundable_amount == 15000
    assert calc.cancellation_fee == 15000
    assert calc.processing_fee == 450
    assert calc.final_refund_amount == 14550
    _assert_conserved(calc)


def test_same_day_no_refund():
    calc = calculate_refund(_booking(total=10000), _hours_before(2))
    assert not calc.is_eligible
    assert calc.reason == "same-day, no refund"
    assert calc.refundable_amount == 0
    assert calc.cancellation_fee == 10000
    assert calc.processing_fee == 0
    assert calc.final_refund_amount == 0
    _assert_conserved(calc)


def test_check_in_passed():
    calc = calculate_refund(_booking(deadline=CHECK_IN_AT + timedelta(days=1)), CHECK_IN_AT + timedelta(hours=3))
    assert not calc.is_eligible
    assert calc.reason == RefundReason.CHECK_IN_PASSED
    assert calc.hours_until_check_in < 0
    assert calc.final_refund_amount == 0


# --- Tier boundaries ---


@pytest.mark.parametrize(
    "hours, reason",
    [
        (24, RefundReason.FULL_REFUND),
        (23.5, RefundReason.PARTIAL_REFUND),
        (12, RefundReason.PARTIAL_REFUND),
        (11.9, RefundReason.SAME_DAY),
        (0, RefundReason.SAME_DAY),
    ],
)
def test_tier_boundaries(hours, reason):
    """Whole hours are floored: 23h30m left is the partial tier."""
    calc = calculate_refund(_booking(), _hours_before(hours))
    assert calc.reason == reason


def test_one_minute_after_check_in_is_passed():
    calc = calculate_refund(_booking(deadline=CHECK_IN_AT + timedelta(days=1)), CHECK_IN_AT + timedelta(minutes=1))
    assert calc.hours_until_check_in == -1
    assert calc.reason == RefundReason.CHECK_IN_PASSED


# --- Eligibility ---


def test_not_cancellable_booking():
    calc = calculate_refund(_booking(cancellable=False), _hours_before(72))
    assert not calc.is_eligible
    assert calc.reason == RefundReason.NOT_ELIGIBLE
    assert calc.final_refund_amount == 0
    assert calc.cancellation_fee == calc.original_amount


@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CANCELLED, BookingStatus.PAYMENT_FAILED])
def test_only_confirmed_bookings_are_eligible(status):
    calc = calculate_refund(_booking(status=status), _hours_before(72))
    assert not calc.is_eligible
    assert calc.reason == RefundReason.NOT_ELIGIBLE


def test_deadline_passed_overrides_tier():
    deadline = _hours_before(60)
    calc = calculate_refund(_booking(deadline=deadline), _hours_before(48))
    assert not calc.is_eligible
    assert calc.reason == RefundReason.DEADLINE_PASSED
    assert calc.final_refund_amount == 0
    _assert_conserved(calc)


def test_exactly_at_deadline_is_still_eligible():
    deadline = _hours_before(30)
    calc = calculate_refund(_booking(deadline=deadline), deadline)
    assert calc.is_eligible
    assert calc.reason == RefundReason.FULL_REFUND


def test_default_deadline_is_24h_before_check_in():
    booking = _booking(deadline=None)
    assert cancellation_deadline(booking) == CHECK_IN_AT - timedelta(hours=24)
    # Inside the last 24h the default deadline has already passed
    calc = calculate_refund(booking, _hours_before(18))
    assert calc.reason == RefundReason.DEADLINE_PASSED


def test_naive_deadline_is_treated_as_utc():
    naive = datetime(2026, 6, 3)
    calc = calculate_refund(_booking(deadline=naive), _hours_before(18))
    assert calc.reason == RefundReason.PARTIAL_REFUND


def test_calculation_is_deterministic():
    booking = _booking()
    now = _hours_before(40)
    assert calculate_refund(booking, now) == calculate_refund(booking, now)


# --- Fees and rounding ---


def test_processing_fee_is_capped():
    calc = calculate_refund(_booking(total=200000), _hours_before(48))
    assert calc.processing_fee == 2500
    assert calc.final_refund_amount == 197500


def test_processing_fee_rounds_half_up():
    # 3% of 150 cents is 4.5 cents
    assert processing_fee_for(150, "USD") == 5
    assert processing_fee_for(149, "USD") == 4


def test_partial_refund_of_odd_amount_rounds_half_up():
    calc = calculate_refund(_booking(total=10001), _hours_before(18))
    assert calc.refundable_amount == 5001
    assert calc.cancellation_fee == 5000
    _assert_conserved(calc)


def test_zero_decimal_currency():
    calc = calculate_refund(_booking(total=20000, currency="JPY"), _hours_before(48))
    # 3% of 20000 yen is 600 yen; the cap is 25 yen
    assert calc.processing_fee == 25
    assert calc.final_refund_amount == 19975


# --- Money helpers ---


def test_major_minor_conversion():
    assert to_major(19400, "USD") == Decimal("194.00")
    assert to_major(1200, "JPY") == Decimal("1200")
    assert to_minor(Decimal("145.50"), "usd") == 14550
    assert to_minor(Decimal("0.005"), "USD") == 1


def test_payload_round_trip():
    calc = calculate_refund(_booking(), _hours_before(48))
    assert RefundCalculation.from_payload(calc.to_payload()) == calc
