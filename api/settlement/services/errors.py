"""Settlement error taxonomy.

Every failure the engine reports to a caller is a SettlementError with a
kind from ErrorKind, so the HTTP layer (and any other caller) can branch on
the kind instead of parsing messages.
"""

import enum

from settlement.services.refund_calculator import RefundCalculation


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    ALREADY_CANCELLED = "already_cancelled"
    INVALID_STATE = "invalid_state"
    NOT_ELIGIBLE = "not_eligible"
    NO_COMPLETED_PAYMENT = "no_completed_payment"
    GATEWAY_FAILURE = "gateway_failure"
    GATEWAY_REJECTED = "gateway_rejected"
    LEDGER_FAILURE = "ledger_failure"
    NOTIFICATION_FAILURE = "notification_failure"
    INVALID_AMOUNT = "invalid_amount"
    REQUEST_NOT_FOUND = "request_not_found"


class SettlementError(Exception):
    """Base class for every failure reported to a caller."""

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str, calculation: RefundCalculation | None = None):
        self.message = message
        self.calculation = calculation
        super().__init__(message)


class NotFound(SettlementError):
    kind = ErrorKind.NOT_FOUND


class AlreadyCancelled(SettlementError):
    kind = ErrorKind.ALREADY_CANCELLED


class InvalidState(SettlementError):
    kind = ErrorKind.INVALID_STATE


class NotEligible(SettlementError):
    kind = ErrorKind.NOT_ELIGIBLE


class NoCompletedPayment(SettlementError):
    kind = ErrorKind.NO_COMPLETED_PAYMENT


class GatewayFailure(SettlementError):
    """Transient: timeout, network, rate limit. Safe to retry the whole cancellation."""

    kind = ErrorKind.GATEWAY_FAILURE
    retryable = True


class GatewayRejected(SettlementError):
    """Permanent: the provider refused the refund (e.g. already refunded upstream)."""

    kind = ErrorKind.GATEWAY_REJECTED


class LedgerFailure(SettlementError):
    """Commission reversal failed after the refund went through. Reconciled, never rolled back."""

    kind = ErrorKind.LEDGER_FAILURE


class NotificationFailure(SettlementError):
    kind = ErrorKind.NOTIFICATION_FAILURE


class InvalidAmount(SettlementError):
    kind = ErrorKind.INVALID_AMOUNT


class RequestNotFound(SettlementError):
    kind = ErrorKind.REQUEST_NOT_FOUND
