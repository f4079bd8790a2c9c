"""Celery application and worker configuration.

Defines the shared Celery instance, serialisation settings and the beat
schedule that drives background reconciliation of processing jobs, so a
job's stored status catches up with the provider even when no client is
polling.
"""
import logging
from celery import Celery
from celery.signals import worker_init
from videogen.config import get_settings

settings = get_settings()

celery_app = Celery(
    "videogen_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["videogen.tasks.reconciliation"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=False,
    worker_prefetch_multiplier=1,
    result_expires=3600,
    broker_connection_retry_on_startup=True,
    beat_schedule={
        "reconcile-processing-jobs": {
            "task": "reconciliation.reconcile_processing_jobs",
            "schedule": settings.RECONCILE_INTERVAL_SECONDS,
            # A sweep that outlives the interval makes the next one redundant
            "options": {"expires": settings.RECONCILE_INTERVAL_SECONDS},
        },
    },
)


@worker_init.connect
def setup_worker(**kwargs):
    """Run once when the worker process starts.

    Quiets HTTP client loggers and fails submissions orphaned in
    ``pending`` by a crashed API process.
    """
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    from videogen.utils.startup import cleanup_orphaned_jobs
    cleanup_orphaned_jobs()
