"""Outbound webhook delivery.

Drains pending outbox rows: POSTs each signed payload to its registration's
URL, marks 2xx responses delivered and reschedules anything else with
exponential backoff until the attempt budget runs out.
"""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import sign_webhook_payload
from app.models.webhook import WebhookDelivery, WebhookRegistration

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReport:
    delivered: int = 0
    retrying: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.delivered + self.retrying + self.failed


def encode_payload(payload: dict) -> bytes:
    """Canonical body bytes; the signature covers exactly these."""
    return json.dumps(payload, separators=(",", ":"), default=str).encode()


class WebhookDeliveryService:
    """Service for sending queued webhook deliveries."""

    def __init__(
        self,
        max_attempts: int | None = None,
        backoff_seconds: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.max_attempts = max_attempts or settings.webhook_max_attempts
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.webhook_retry_backoff_seconds
        )
        self.timeout = timeout or settings.webhook_timeout_seconds
        self._transport = transport

    def next_attempt_delay(self, attempts: int) -> timedelta:
        """Backoff after the given number of failed attempts: base, 2x base, 4x base..."""
        return timedelta(seconds=self.backoff_seconds * (2 ** max(attempts - 1, 0)))

    async def deliver_due(
        self,
        db: AsyncSession,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> DeliveryReport:
        """Send every pending delivery whose next attempt is due.

        Rows are locked with SKIP LOCKED so concurrent workers split the
        batch instead of double-sending. The caller commits.
        """
        now = now or datetime.now(UTC)
        result = await db.execute(
            select(WebhookDelivery, WebhookRegistration)
            .join(WebhookRegistration, WebhookDelivery.webhook_id == WebhookRegistration.id)
            .where(
                WebhookDelivery.status == "pending",
                WebhookDelivery.next_attempt_at <= now,
            )
            .order_by(WebhookDelivery.next_attempt_at)
            .limit(limit or settings.webhook_drain_batch_size)
            .with_for_update(skip_locked=True, of=WebhookDelivery)
        )
        rows = result.all()

        report = DeliveryReport()
        if not rows:
            return report

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for delivery, registration in rows:
                outcome = await self.deliver(client, delivery, registration, now)
                setattr(report, outcome, getattr(report, outcome) + 1)

        await db.flush()
        logger.info(
            f"Webhook drain: {report.delivered} delivered, "
            f"{report.retrying} retrying, {report.failed} failed"
        )
        return report

    async def deliver(
        self,
        client: httpx.AsyncClient,
        delivery: WebhookDelivery,
        registration: WebhookRegistration,
        now: datetime,
    ) -> str:
        """Attempt one delivery and record the result on the row.

        Returns:
            str: "delivered", "retrying" or "failed"
        """
        body = encode_payload(delivery.payload)
        headers = {
            "Content-Type": "application/json",
            "X-Signature": sign_webhook_payload(registration.secret, body),
            "X-ZeroPay-Event": delivery.event,
            "X-ZeroPay-Delivery": str(delivery.id),
        }

        delivery.attempts = (delivery.attempts or 0) + 1
        try:
            response = await client.post(registration.url, content=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            # ValueError covers hosts that fail IDNA decoding
            delivery.last_status_code = None
            delivery.last_error = f"{type(e).__name__}: {e}"[:1000]
            logger.warning(f"Webhook {delivery.event} to {registration.url} failed: {e}")
            return self._schedule_retry(delivery, now)

        delivery.last_status_code = response.status_code
        if response.is_success:
            delivery.status = "delivered"
            delivery.delivered_at = now
            delivery.last_error = None
            logger.info(
                f"Webhook {delivery.event} delivered to {registration.url} "
                f"({response.status_code})"
            )
            return "delivered"

        delivery.last_error = f"HTTP {response.status_code}: {response.text[:500]}"
        logger.warning(
            f"Webhook {delivery.event} to {registration.url} "
            f"returned {response.status_code}"
        )
        return self._schedule_retry(delivery, now)

    def _schedule_retry(self, delivery: WebhookDelivery, now: datetime) -> str:
        if delivery.attempts >= self.max_attempts:
            delivery.status = "failed"
            logger.error(
                f"Webhook delivery {delivery.id} ({delivery.event}) gave up "
                f"after {delivery.attempts} attempts"
            )
            return "failed"
        delivery.next_attempt_at = now + self.next_attempt_delay(delivery.attempts)
        return "retrying"


webhook_delivery_service = WebhookDeliveryService()
