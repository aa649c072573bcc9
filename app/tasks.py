"""Celery background tasks.

This module contains the background tasks for:
- Webhook outbox delivery
- Transactional email
"""

import asyncio
import logging

from celery import shared_task

from app.database import create_database
from app.services.notification_service import notification_service
from app.services.webhook_delivery_service import webhook_delivery_service

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


# ==================== WEBHOOK TASKS ====================


@shared_task(name="app.tasks.deliver_pending_webhooks", ignore_result=True)
def deliver_pending_webhooks() -> dict:
    """Drain due webhook deliveries.

    Kicked after every commit that writes outbox rows and run on a beat
    schedule as a safety net. Delivery failures are recorded on the rows,
    never raised.
    """
    report = run_async(_deliver_pending_webhooks())
    return {
        "delivered": report.delivered,
        "retrying": report.retrying,
        "failed": report.failed,
    }


async def _deliver_pending_webhooks():
    database = create_database()
    try:
        async with database.session() as db:
            report = await webhook_delivery_service.deliver_due(db)
            await db.commit()
            return report
    finally:
        await database.dispose()


# ==================== EMAIL TASKS ====================


@shared_task(name="app.tasks.send_email", bind=True, max_retries=3, ignore_result=True)
def send_email(self, template: str, to_email: str, context: dict) -> bool:
    """Render and send one transactional email, retrying transient failures."""
    sent = run_async(notification_service.send_template(template, to_email, context))
    if not sent:
        logger.warning(f"Email {template} to {to_email} not sent (attempt {self.request.retries + 1})")
        if self.request.retries < self.max_retries:
            raise self.retry(countdown=60 * (self.request.retries + 1))
    return sent
