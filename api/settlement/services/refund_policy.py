"""Routing between automatic settlement and manual review."""

import enum

from settlement.services.refund_calculator import RefundCalculation


class SettlementPath(str, enum.Enum):
    AUTOMATIC = "automatic"
    MANUAL_REVIEW = "manual_review"


def route(calc: RefundCalculation) -> SettlementPath:
    """Automatic only for an eligible, positive, full-tier refund.

    Full tier means no cancellation fee was charged. The processing fee is
    ignored here: it comes off every positive refund, so comparing the final
    amount against the refundable amount would never pick the automatic path.
    """
    if calc.is_eligible and calc.final_refund_amount > 0 and calc.cancellation_fee == 0:
        return SettlementPath.AUTOMATIC
    return SettlementPath.MANUAL_REVIEW
