# app/worker/schedulers.py
"""
Scheduled task definitions for Celery Beat.
"""
import logging
from celery.schedules import timedelta
from app.core.config import settings

logger = logging.getLogger(__name__)


def get_beat_schedule():
    """
    Generate Celery Beat schedule from configuration.

    Returns:
        Dict of scheduled tasks
    """
    schedule = {}

    if settings.COUNTER_RECONCILE_INTERVAL > 0:
        schedule["reconcile-category-counters"] = {
            "task": "categories:reconcile_counters",
            "schedule": timedelta(seconds=settings.COUNTER_RECONCILE_INTERVAL),
            "options": {"expires": settings.COUNTER_RECONCILE_INTERVAL},
        }
    else:
        logger.warning("Counter reconciliation is disabled (COUNTER_RECONCILE_INTERVAL <= 0)")

    return schedule
