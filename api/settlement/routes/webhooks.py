"""Stripe webhook handler.

Processes refund status updates: refund.updated, refund.failed and
charge.refund.updated all carry a Refund object.
"""

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status

from settlement.core.dependencies import get_coordinator
from settlement.services.settlement import SettlementCoordinator
from settlement.services.stripe_service import construct_webhook_event, refund_status_from_provider

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

REFUND_EVENTS = frozenset({"refund.updated", "refund.failed", "charge.refund.updated"})


@router.post("/stripe")
async def stripe_webhook(request: Request, coordinator: SettlementCoordinator = Depends(get_coordinator)):
    """Handle Stripe webhook events.

    The coordinator commits the update in its own session, independent of
    any request-scoped one.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = construct_webhook_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature") from None

    if event["type"] in REFUND_EVENTS:
        refund = event["data"]["object"]
        updated = await coordinator.apply_refund_update(refund["id"], refund_status_from_provider(refund["status"]))
        if updated is None:
            # Non-2xx so Stripe redelivers once the refund is recorded
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown refund {refund['id']}")

    return {"status": "ok"}
