"""Stripe integration for issuing refunds.

Wraps the Stripe Python SDK. Amounts are minor units, which is what Stripe
expects. Every refund carries a caller-supplied idempotency key, so the SDK's
own network retries (bounded by settings) and a caller's retry after a
timeout both resolve to the same refund upstream.
"""

import asyncio
import logging
from dataclasses import dataclass

import stripe

from settlement.core.config import settings
from settlement.models.payment import RefundStatus
from settlement.services.errors import GatewayFailure, GatewayRejected

logger = logging.getLogger(__name__)

# Errors worth retrying: the request may not have reached Stripe, or Stripe failed on its side
_TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)

_PROVIDER_STATUS = {
    "succeeded": RefundStatus.COMPLETED,
    "pending": RefundStatus.PENDING,
    "requires_action": RefundStatus.PENDING,
    "failed": RefundStatus.FAILED,
    "canceled": RefundStatus.FAILED,
}


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    amount_minor: int
    currency: str
    status: RefundStatus


def refund_status_from_provider(provider_status: str) -> RefundStatus:
    """Map a Stripe refund status onto ours. Unknown statuses stay pending."""
    return _PROVIDER_STATUS.get(provider_status, RefundStatus.PENDING)


def refund_idempotency_key(booking_id: int, payment_id: int, amount_minor: int) -> str:
    return f"refund-{booking_id}-{payment_id}-{amount_minor}"


def _configure() -> None:
    """Set the Stripe API key and retry budget from settings."""
    stripe.api_key = settings.stripe_secret_key
    stripe.max_network_retries = settings.stripe_max_network_retries


class StripeGateway:
    """Payment gateway backed by Stripe refunds."""

    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.gateway_timeout_seconds

    async def create_refund(
        self,
        transaction_id: str,
        amount_minor: int,
        reason: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> GatewayRefund:
        """Refund part or all of a PaymentIntent.

        Raises GatewayFailure for transient problems (including the timeout)
        and GatewayRejected when Stripe refuses the refund outright. A timed-out
        call may still complete upstream; retrying with the same key is safe.
        """
        try:
            refund = await asyncio.wait_for(
                asyncio.to_thread(
                    self._create_refund, transaction_id, amount_minor, reason, metadata, idempotency_key
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.warning("Stripe refund timed out", extra={"payment_intent": transaction_id})
            raise GatewayFailure(f"Refund call timed out after {self.timeout_seconds:g}s") from None
        except _TRANSIENT_ERRORS as exc:
            logger.warning("Stripe refund failed transiently", extra={"payment_intent": transaction_id})
            raise GatewayFailure(f"Payment provider unavailable: {exc.user_message or exc}") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe rejected refund", extra={"payment_intent": transaction_id, "code": exc.code})
            raise GatewayRejected(f"Payment provider rejected the refund: {exc.user_message or exc}") from exc

        return GatewayRefund(
            id=refund.id,
            amount_minor=refund.amount,
            currency=refund.currency.upper(),
            status=refund_status_from_provider(refund.status),
        )

    @staticmethod
    def _create_refund(
        transaction_id: str,
        amount_minor: int,
        reason: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> stripe.Refund:
        _configure()

        return stripe.Refund.create(
            payment_intent=transaction_id,
            amount=amount_minor,
            reason=reason,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event."""
    return stripe.Webhook.construct_event(
        payload,
        sig_header,
        settings.stripe_webhook_secret,
    )
