"""Webhook registration management and outbox enqueueing."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.background_tasks import defer_task
from app.core.exceptions import NotFoundError, ValidationError
from app.core.security import generate_webhook_secret
from app.models.transaction import Transaction
from app.models.webhook import WebhookDelivery, WebhookRegistration
from app.services.audit_service import audit_service
from app.utils.validators import validate_webhook_url

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = ("payment.success", "payment.failed", "payment.refunded")
TEST_EVENT = "webhook.test"
DELIVER_TASK = "app.tasks.deliver_pending_webhooks"


def build_payload(event: str, transaction: Transaction) -> dict[str, Any]:
    """Wire body for a transaction event."""
    return {
        "event": event,
        "data": {
            "orderId": transaction.order_id,
            "amount": float(transaction.amount),
            "currency": transaction.currency,
            "status": transaction.status,
            "method": transaction.method,
            "customerEmail": transaction.customer_email,
            "createdAt": transaction.created_at.isoformat() if transaction.created_at else None,
        },
    }


class WebhookService:
    """Merchant webhook endpoints and the delivery outbox."""

    async def enqueue_event(
        self,
        db: AsyncSession,
        event: str,
        transaction: Transaction,
    ) -> list[WebhookDelivery]:
        """Write one outbox row per registration subscribed to the event.

        Rows join the caller's session, so they commit atomically with the
        state change that produced the event. The worker is kicked after
        commit.
        """
        if event not in WEBHOOK_EVENTS:
            raise ValueError(f"Unknown webhook event: {event}")

        result = await db.execute(
            select(WebhookRegistration).where(
                WebhookRegistration.merchant_id == transaction.merchant_id
            )
        )
        registrations = [r for r in result.scalars().all() if event in (r.events or [])]
        if not registrations:
            return []

        payload = build_payload(event, transaction)
        deliveries = []
        for registration in registrations:
            delivery = WebhookDelivery(
                webhook_id=registration.id,
                event=event,
                payload=payload,
                status="pending",
                attempts=0,
                next_attempt_at=datetime.now(UTC),
            )
            db.add(delivery)
            deliveries.append(delivery)

        await db.flush()
        defer_task(db, DELIVER_TASK)
        logger.info(
            f"Queued {event} for {transaction.order_id} to {len(deliveries)} endpoint(s)"
        )
        return deliveries

    # ==================== REGISTRATIONS ====================

    async def create_webhook(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        url: str,
        events: list[str],
    ) -> WebhookRegistration:
        if not validate_webhook_url(url):
            raise ValidationError("Invalid URL format")
        if not events:
            raise ValidationError("At least one event is required")
        unknown = [e for e in events if e not in WEBHOOK_EVENTS]
        if unknown:
            raise ValidationError(f"Unsupported webhook event(s): {', '.join(unknown)}")

        registration = WebhookRegistration(
            merchant_id=merchant_id,
            url=url,
            secret=generate_webhook_secret(),
            # de-duplicate, keep order
            events=list(dict.fromkeys(events)),
        )
        db.add(registration)
        await db.flush()

        await audit_service.log_action(
            db,
            actor=str(merchant_id),
            action="WEBHOOK_CREATED",
            resource_type="webhook",
            resource_id=registration.id,
            merchant_id=merchant_id,
            details={"url": url, "events": registration.events},
        )
        return registration

    async def list_webhooks(self, db: AsyncSession, merchant_id: UUID) -> list[WebhookRegistration]:
        result = await db.execute(
            select(WebhookRegistration)
            .where(WebhookRegistration.merchant_id == merchant_id)
            .order_by(WebhookRegistration.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_webhook(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        webhook_id: UUID,
    ) -> WebhookRegistration:
        """Get a merchant's registration or raise NotFoundError."""
        result = await db.execute(
            select(WebhookRegistration).where(
                WebhookRegistration.id == webhook_id,
                WebhookRegistration.merchant_id == merchant_id,
            )
        )
        registration = result.scalar_one_or_none()
        if not registration:
            raise NotFoundError("Webhook", str(webhook_id))
        return registration

    async def delete_webhook(self, db: AsyncSession, merchant_id: UUID, webhook_id: UUID) -> None:
        """Remove a registration together with its outbox rows."""
        registration = await self.get_webhook(db, merchant_id, webhook_id)

        await db.execute(
            delete(WebhookDelivery)
            .where(WebhookDelivery.webhook_id == registration.id)
            .execution_options(synchronize_session=False)
        )
        await db.delete(registration)

        await audit_service.log_action(
            db,
            actor=str(merchant_id),
            action="WEBHOOK_DELETED",
            resource_type="webhook",
            resource_id=webhook_id,
            merchant_id=merchant_id,
            details={"url": registration.url},
        )
        await db.flush()

    async def send_test(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        webhook_id: UUID,
    ) -> WebhookDelivery:
        """Queue a sample event to one registration."""
        registration = await self.get_webhook(db, merchant_id, webhook_id)

        delivery = WebhookDelivery(
            webhook_id=registration.id,
            event=TEST_EVENT,
            payload={
                "event": TEST_EVENT,
                "data": {
                    "webhookId": str(registration.id),
                    "message": "This is a test event from ZeroPay",
                    "sentAt": datetime.now(UTC).isoformat(),
                },
            },
            status="pending",
            attempts=0,
            next_attempt_at=datetime.now(UTC),
        )
        db.add(delivery)
        await db.flush()
        defer_task(db, DELIVER_TASK)
        return delivery


webhook_service = WebhookService()
