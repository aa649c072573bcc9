"""Post-commit dispatch of Celery tasks.

Services never talk to the broker directly. They register tasks on the
session with defer_task(); commit_and_dispatch() commits and then hands each
task to a small thread pool that publishes it. The caller gets control back
as soon as the commit returns, whatever the broker does.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.worker import celery_app

logger = logging.getLogger(__name__)

_DEFERRED_KEY = "deferred_tasks"

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="task-dispatch")


def defer_task(db: AsyncSession, task_name: str, **kwargs: Any) -> None:
    """Queue a Celery task to be published once the session commits."""
    deferred: list[tuple[str, dict[str, Any]]] = db.info.setdefault(_DEFERRED_KEY, [])
    entry = (task_name, kwargs)
    if entry not in deferred:
        deferred.append(entry)


def discard_deferred(db: AsyncSession) -> None:
    """Drop queued tasks (the session rolled back)."""
    db.info.pop(_DEFERRED_KEY, None)


def _publish(task_name: str, kwargs: dict[str, Any]) -> None:
    try:
        celery_app.send_task(task_name, kwargs=kwargs, retry=False)
    except Exception as e:
        logger.warning(f"Could not enqueue task {task_name}: {e}")


def dispatch_task(task_name: str, kwargs: dict[str, Any]) -> None:
    """Publish a task on a background thread without waiting for the broker."""
    _executor.submit(_publish, task_name, kwargs)


async def commit_and_dispatch(db: AsyncSession) -> None:
    """Commit the session, then fire its deferred tasks."""
    await db.commit()
    deferred = db.info.pop(_DEFERRED_KEY, [])
    for task_name, kwargs in deferred:
        try:
            dispatch_task(task_name, kwargs)
        except Exception as e:
            logger.error(f"Task dispatch failed for {task_name}: {e}")


def shutdown_dispatcher() -> None:
    """Wait for in-flight publishes on shutdown."""
    _executor.shutdown(wait=True, cancel_futures=False)
