"""Refund notifications via SMTP.

Callers treat every function here as best-effort: a failed email never
undoes a refund.
"""

import logging
from email.message import EmailMessage

import aiosmtplib

from settlement.core.config import settings
from settlement.models.booking import Booking
from settlement.services.refund_calculator import RefundCalculation, to_major

logger = logging.getLogger(__name__)


async def send_email(to: str, subject: str, body: str) -> None:
    """Send a plain-text email via SMTP."""
    message = EmailMessage()
    message["From"] = settings.smtp_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    await aiosmtplib.send(
        message,
        hostname=settings.smtp_host,
        port=settings.smtp_port,
        timeout=settings.smtp_timeout_seconds,
    )


def _money(amount_minor: int, currency: str) -> str:
    return f"{to_major(amount_minor, currency)} {currency}"


class EmailNotifier:
    """Notification channel for guests and the admin team."""

    async def notify_guest_refund(
        self, booking: Booking, refund_amount_minor: int, refund_reference: str, calculation: RefundCalculation
    ) -> None:
        body = (
            f"Dear {booking.guest_name},\n\n"
            f"Your booking {booking.confirmation_number} at {booking.hotel_name} has been cancelled "
            f"and a refund has been issued.\n\n"
            f"Original amount: {_money(calculation.original_amount, calculation.currency)}\n"
            f"Cancellation fee: {_money(calculation.cancellation_fee, calculation.currency)}\n"
            f"Processing fee: {_money(calculation.processing_fee, calculation.currency)}\n"
            f"Refund amount: {_money(refund_amount_minor, calculation.currency)}\n"
            f"Refund reference: {refund_reference}\n\n"
            f"The refund will appear on your original payment method within "
            f"{settings.refund_processing_time}.\n"
        )
        await send_email(booking.guest_email, f"Refund processed - booking {booking.confirmation_number}", body)
        logger.info("Refund email sent to guest", extra={"booking_id": booking.id})

    async def notify_admin_refund(
        self, booking: Booking, refund_amount_minor: int, refund_reference: str, calculation: RefundCalculation
    ) -> None:
        body = (
            f"Refund processed\n\n"
            f"Booking: {booking.confirmation_number} (#{booking.id})\n"
            f"Guest: {booking.guest_name} <{booking.guest_email}>\n"
            f"Hotel: {booking.hotel_name}\n"
            f"Refund amount: {_money(refund_amount_minor, calculation.currency)}\n"
            f"Refund reference: {refund_reference}\n"
            f"Cancellation reason: {booking.cancellation_reason or '-'}\n"
        )
        await send_email(settings.admin_email, f"Refund processed - {booking.confirmation_number}", body)

    async def notify_admin_refund_request(
        self, booking: Booking, request_id: int, requested_by: str, reason: str, calculation: RefundCalculation
    ) -> None:
        body = (
            f"New refund request #{request_id}\n\n"
            f"Booking: {booking.confirmation_number} (#{booking.id})\n"
            f"Guest: {booking.guest_name} <{booking.guest_email}>\n"
            f"Refundable amount: {_money(calculation.refundable_amount, calculation.currency)}\n"
            f"Policy outcome: {calculation.reason}\n"
            f"Reason: {reason}\n"
            f"Requested by: {requested_by}\n\n"
            f"Please review this request in the admin panel.\n"
        )
        await send_email(settings.admin_email, f"New refund request - {booking.confirmation_number}", body)
