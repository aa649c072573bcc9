"""Celery worker configuration.

Background work for the payment core:
- Webhook outbox delivery (kicked after each commit, and drained on a beat)
- Transactional email
"""

from celery import Celery

from app.config import settings

# Create Celery app
celery_app = Celery(
    "zeropay_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Asia/Kolkata",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,  # Soft limit at 4 minutes

    # Publishing from the API must fail fast when the broker is down
    task_publish_retry=False,
    broker_connection_timeout=2,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour
    task_ignore_result=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Safety net for kicks lost while the broker was unreachable
        "drain-webhook-outbox": {
            "task": "app.tasks.deliver_pending_webhooks",
            "schedule": settings.webhook_drain_interval_seconds,
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
