"""
Grant Portal Celery Application Configuration

Background workers handle the notification outbox, transactional email and
periodic maintenance (closing past-deadline grants, pruning notifications).
"""

import logging
import time
from datetime import timedelta
from typing import Any

from celery import Celery, Task
from celery.signals import task_failure, task_postrun, task_prerun, task_retry, worker_process_init
from kombu import Exchange, Queue

from backend.core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Queue Definitions
# =============================================================================

default_exchange = Exchange("default", type="direct")
priority_exchange = Exchange("priority", type="direct")

TASK_QUEUES = (
    # Critical: user-facing email and notification delivery
    Queue(
        "critical",
        exchange=priority_exchange,
        routing_key="critical",
        queue_arguments={"x-max-priority": 10},
    ),
    # Normal: periodic maintenance
    Queue(
        "normal",
        exchange=default_exchange,
        routing_key="normal",
        queue_arguments={"x-max-priority": 3},
    ),
)

TASK_ROUTES = {
    "backend.tasks.notifications.dispatch_notifications": {"queue": "critical"},
    "backend.tasks.notifications.send_verification_email": {"queue": "critical"},
    "backend.tasks.notifications.cleanup_notifications": {"queue": "normal"},
    "backend.tasks.grants.close_expired_grants": {"queue": "normal"},
}


def create_celery_app() -> Celery:
    """Create and configure the Celery application."""
    app = Celery(
        "grantportal",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
        include=[
            "backend.tasks.grants",
            "backend.tasks.notifications",
        ],
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="normal",
        task_default_exchange="default",
        task_default_routing_key="normal",
        task_soft_time_limit=120,
        task_time_limit=300,
        task_default_retry_delay=10,
        task_max_retries=3,
        worker_prefetch_multiplier=2,
        result_expires=86400,
        task_track_started=True,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        timezone="UTC",
        enable_utc=True,
        broker_connection_retry_on_startup=True,
        beat_schedule={
            "close-expired-grants": {
                "task": "backend.tasks.grants.close_expired_grants",
                "schedule": timedelta(hours=1),
                "options": {"queue": "normal"},
            },
            "cleanup-notifications": {
                "task": "backend.tasks.notifications.cleanup_notifications",
                "schedule": timedelta(hours=24),
                "options": {"queue": "normal"},
            },
        },
    )

    return app


celery_app = create_celery_app()


# =============================================================================
# Custom Task Base Class with Retry Policy
# =============================================================================


class BaseTaskWithRetry(Task):
    """
    Base task class with exponential backoff retry policy.

    3 retries, backoff from 10 seconds, capped at 5 minutes.
    """

    autoretry_for = (Exception,)
    max_retries = 3
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True

    def on_failure(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        logger.error(
            f"Task {self.name}[{task_id}] failed after {self.request.retries} retries: {exc}",
            exc_info=True,
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        logger.warning(
            f"Task {self.name}[{task_id}] retrying (attempt {self.request.retries + 1}/{self.max_retries}): {exc}"
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


celery_app.Task = BaseTaskWithRetry


# =============================================================================
# Monitoring Hooks
# =============================================================================

_task_start_times: dict[str, float] = {}


@worker_process_init.connect
def init_worker_monitoring(**kwargs: Any) -> None:
    from backend.core.sentry import init_sentry

    init_sentry(component="worker")


@task_prerun.connect
def task_prerun_handler(sender: Task | None = None, task_id: str | None = None, **extra: Any) -> None:
    if task_id:
        _task_start_times[task_id] = time.time()


@task_postrun.connect
def task_postrun_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    state: str | None = None,
    **extra: Any,
) -> None:
    if task_id and task_id in _task_start_times:
        latency = time.time() - _task_start_times.pop(task_id)
        logger.info(f"Task {sender.name if sender else 'unknown'}[{task_id}] completed in {latency:.3f}s with state={state}")


@task_failure.connect
def task_failure_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    exception: Exception | None = None,
    **kwargs: Any,
) -> None:
    logger.error(f"Task {sender.name if sender else 'unknown'}[{task_id}] failed: {exception}")
    if task_id:
        _task_start_times.pop(task_id, None)


@task_retry.connect
def task_retry_handler(sender: Task | None = None, request: Any = None, reason: Any = None, **kwargs: Any) -> None:
    task_id = request.id if request else "unknown"
    logger.warning(f"Task {sender.name if sender else 'unknown'}[{task_id}] retrying: {reason}")


__all__ = ["celery_app", "BaseTaskWithRetry"]
