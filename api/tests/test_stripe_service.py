"""Stripe gateway: status mapping, error classification, timeout, idempotency."""

import time
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from settlement.models import RefundStatus
from settlement.services.errors import GatewayFailure, GatewayRejected
from settlement.services.stripe_service import StripeGateway, refund_idempotency_key, refund_status_from_provider

ARGS = ("pi_123", 19400, "requested_by_customer", {"booking_id": "1"}, "refund-1-1-19400")


@pytest.mark.asyncio
async def test_create_refund_maps_response():
    stripe_refund = SimpleNamespace(id="re_1", amount=19400, currency="usd", status="succeeded")

    with patch("settlement.services.stripe_service.stripe.Refund.create", return_value=stripe_refund) as create:
        refund = await StripeGateway(timeout_seconds=5).create_refund(*ARGS)

    assert refund.id == "re_1"
    assert refund.amount_minor == 19400
    assert refund.currency == "USD"
    assert refund.status is RefundStatus.COMPLETED
    kwargs = create.call_args.kwargs
    assert kwargs["payment_intent"] == "pi_123"
    assert kwargs["amount"] == 19400
    assert kwargs["idempotency_key"] == "refund-1-1-19400"


@pytest.mark.asyncio
async def test_sdk_retry_budget_is_configured():
    stripe_refund = SimpleNamespace(id="re_1", amount=100, currency="usd", status="pending")

    with (
        patch("settlement.services.stripe_service.settings.stripe_max_network_retries", 3),
        patch("settlement.services.stripe_service.stripe.Refund.create", return_value=stripe_refund),
    ):
        await StripeGateway(timeout_seconds=5).create_refund(*ARGS)

    assert stripe.max_network_retries == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        stripe.APIConnectionError("Network unreachable"),
        stripe.RateLimitError("Too many requests"),
        stripe.APIError("Internal error"),
    ],
)
async def test_transient_errors_are_gateway_failures(error):
    with patch("settlement.services.stripe_service.stripe.Refund.create", side_effect=error):
        with pytest.raises(GatewayFailure) as exc_info:
            await StripeGateway(timeout_seconds=5).create_refund(*ARGS)
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_invalid_request_is_rejected():
    error = stripe.InvalidRequestError(
        "Charge has already been refunded.", "payment_intent", code="charge_already_refunded"
    )

    with patch("settlement.services.stripe_service.stripe.Refund.create", side_effect=error):
        with pytest.raises(GatewayRejected) as exc_info:
            await StripeGateway(timeout_seconds=5).create_refund(*ARGS)
    assert not exc_info.value.retryable


@pytest.mark.asyncio
async def test_timeout_is_gateway_failure():
    def slow_create(**kwargs):
        time.sleep(0.2)

    with patch("settlement.services.stripe_service.stripe.Refund.create", side_effect=slow_create):
        with pytest.raises(GatewayFailure, match="timed out"):
            await StripeGateway(timeout_seconds=0.01).create_refund(*ARGS)


def test_provider_status_mapping():
    assert refund_status_from_provider("succeeded") is RefundStatus.COMPLETED
    assert refund_status_from_provider("pending") is RefundStatus.PENDING
    assert refund_status_from_provider("requires_action") is RefundStatus.PENDING
    assert refund_status_from_provider("failed") is RefundStatus.FAILED
    assert refund_status_from_provider("canceled") is RefundStatus.FAILED
    assert refund_status_from_provider("something_new") is RefundStatus.PENDING


def test_idempotency_key_depends_on_amount():
    assert refund_idempotency_key(1, 2, 19400) == "refund-1-2-19400"
    assert refund_idempotency_key(1, 2, 19400) != refund_idempotency_key(1, 2, 14550)
