"""Email notification service.

Transactional email goes out through SendGrid's v3 HTTP API. When no API key
is configured the message is logged instead, so development and test
environments never need credentials.

Services do not send email inline: they call queue_email(), which defers an
``app.tasks.send_email`` Celery task until the surrounding session commits.
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.background_tasks import defer_task

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class NotificationService:
    """Renders and sends transactional email."""

    # Email templates
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    REFUND_PROCESSED = "refund_processed"
    DISPUTE_CREATED = "dispute_created"
    DISPUTE_RESOLVED = "dispute_resolved"

    TEMPLATES = (
        PAYMENT_SUCCESS,
        PAYMENT_FAILED,
        REFUND_PROCESSED,
        DISPUTE_CREATED,
        DISPUTE_RESOLVED,
    )

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    # ==================== QUEUEING ====================

    def queue_email(
        self,
        db: AsyncSession,
        template: str,
        to_email: str,
        context: dict[str, Any],
    ) -> None:
        """Send the email from the worker once the session commits."""
        if template not in self.TEMPLATES:
            raise ValueError(f"Unknown email template: {template}")
        defer_task(
            db,
            "app.tasks.send_email",
            template=template,
            to_email=to_email,
            context=_json_safe(context),
        )

    # ==================== RENDERING ====================

    def render(self, template: str, context: dict[str, Any]) -> tuple[str, str]:
        """Build (subject, plain text body) for a template.

        Args:
            template: One of TEMPLATES
            context: Template variables (order_id, amount, currency, ...)

        Returns:
            tuple: Subject line and body text
        """
        order_id = context.get("order_id", "")
        amount = f"{context.get('currency', settings.default_currency)} {context.get('amount', '')}"

        if template == self.PAYMENT_SUCCESS:
            return (
                "Payment Successful - ZeroPay",
                f"Your payment of {amount} for order {order_id} was successful.\n"
                f"Payment method: {context.get('method', '')}",
            )
        if template == self.PAYMENT_FAILED:
            return (
                "Payment Failed - ZeroPay",
                f"Your payment of {amount} for order {order_id} could not be completed. "
                "No money has been taken. Please try again.",
            )
        if template == self.REFUND_PROCESSED:
            return (
                "Refund Processed - ZeroPay",
                f"A refund of {context.get('currency', settings.default_currency)} "
                f"{context.get('refunded_amount', '')} for order {order_id} has been processed.\n"
                f"Reason: {context.get('reason', '')}",
            )
        if template == self.DISPUTE_CREATED:
            return (
                f"New dispute on order {order_id} - ZeroPay",
                f"A customer has disputed order {order_id} ({amount}).\n"
                f"Reason: {context.get('reason', '')}\n"
                f"Customer message: {context.get('customer_message', '')}\n\n"
                "Please respond with your evidence from the merchant dashboard.",
            )
        if template == self.DISPUTE_RESOLVED:
            outcome = "in your favour" if context.get("decision") == "merchant" else "in the customer's favour"
            body = f"The dispute on order {order_id} ({amount}) was resolved {outcome}."
            if context.get("notes"):
                body += f"\nNotes: {context['notes']}"
            return f"Dispute resolved for order {order_id} - ZeroPay", body

        raise ValueError(f"Unknown email template: {template}")

    def _generate_email_html(self, title: str, body: str) -> str:
        paragraphs = "".join(
            f'<p style="color: #4b5563; font-size: 16px; line-height: 1.6;">{line}</p>'
            for line in body.splitlines()
            if line.strip()
        )
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                     max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
            <div style="background-color: #f9fafb; border-radius: 8px; padding: 24px;">
                <h1 style="color: #111827; font-size: 24px; margin-bottom: 16px;">{title}</h1>
                {paragraphs}
            </div>
            <p style="color: #9ca3af; font-size: 12px; margin-top: 24px; text-align: center;">
                &copy; {datetime.now(UTC).year} ZeroPay. All rights reserved.
            </p>
        </body>
        </html>
        """

    # ==================== SENDING (SENDGRID) ====================

    async def send_email(
        self,
        to_email: str,
        subject: str,
        text_content: str,
        html_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid.

        Returns:
            bool: True if SendGrid accepted it or it was logged in its place
        """
        if not settings.sendgrid_api_key:
            logger.info(f"[email disabled] To: {to_email} | Subject: {subject}\n{text_content}")
            return True

        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": settings.email_from_address,
                "name": settings.email_from_name,
            },
            "subject": subject,
            "content": [{"type": "text/plain", "value": text_content}],
        }
        if html_content:
            payload["content"].append({"type": "text/html", "value": html_content})

        headers = {
            "Authorization": f"Bearer {settings.sendgrid_api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(SENDGRID_URL, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Email to {to_email} failed: {e}")
            return False

        if response.status_code not in (200, 202):
            logger.error(
                f"SendGrid rejected email to {to_email}: "
                f"{response.status_code} {response.text[:200]}"
            )
            return False
        return True

    async def send_template(self, template: str, to_email: str, context: dict[str, Any]) -> bool:
        """Render and send one templated email."""
        subject, text = self.render(template, context)
        html = self._generate_email_html(subject.removesuffix(" - ZeroPay"), text)
        return await self.send_email(to_email, subject, text, html)


def _json_safe(context: dict[str, Any]) -> dict[str, Any]:
    safe: dict[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, Decimal):
            safe[key] = str(value)
        elif isinstance(value, datetime):
            safe[key] = value.isoformat()
        elif value is None or isinstance(value, (str, int, float, bool)):
            safe[key] = value
        else:
            safe[key] = str(value)
    return safe


# Singleton instance
notification_service = NotificationService()
