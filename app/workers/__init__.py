"""Celery workers for FeedSieve.

Modules:
- celery_app: Celery application configuration
- reparse: Reparse sweep tasks
"""

from app.workers.celery_app import celery_app

__all__ = [
    "celery_app",
]
