"""Celery application configuration.

This module configures the Celery application for FeedSieve background sweeps.
Uses Redis as both broker and result backend.
"""

from celery import Celery
from celery.schedules import crontab

from app.core.config import get_config

config = get_config()

# Create Celery app
celery_app = Celery(
    "feedsieve",
    broker=str(config.celery_broker_url),
    backend=str(config.celery_result_backend),
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=1800,  # 30 minutes hard limit
    task_soft_time_limit=1740,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,
    # Result settings
    result_expires=86400,  # 24 hours
    result_extended=True,
    # Beat scheduler settings
    beat_scheduler="celery.beat:PersistentScheduler",
    beat_schedule_filename="celerybeat-schedule",
    beat_schedule={
        "reparse-unresolved-items": {
            "task": "app.workers.reparse.reparse_unresolved_items",
            "schedule": crontab(minute=config.unresolved_sweep_cron_minute),
        },
    },
    # Task routes
    task_routes={
        "app.workers.reparse.*": {"queue": "reparse"},
    },
    # Default queue
    task_default_queue="default",
)

# Auto-discover tasks from these modules
celery_app.autodiscover_tasks(
    [
        "app.workers.reparse",
    ]
)

__all__ = ["celery_app"]
