# app/worker/tasks/maintenance.py
"""
Celery tasks for category tree maintenance.
"""
import logging
from celery import shared_task
from app.db.base import SessionLocal
from app.services.category_service import SYSTEM_ACTOR, CategoryService

logger = logging.getLogger(__name__)


@shared_task(name="categories:reconcile_counters")
def reconcile_counters():
    """
    Recompute children_count and product_count for every live category.

    Product links are written by another service, so product_count drifts
    between runs; this task is the only thing that corrects it.
    """
    try:
        logger.info("Starting category counter reconciliation")

        db_session = SessionLocal()
        try:
            corrected = CategoryService(db_session).reconcile_counters()
            logger.info(f"Corrected counters on {corrected} categories")
            return {"status": "success", "corrected": corrected}
        finally:
            db_session.close()
    except Exception as e:
        logger.exception(f"Error reconciling category counters: {str(e)}")
        return {"status": "error", "message": str(e)}


@shared_task(name="categories:rebuild_hierarchy")
def rebuild_hierarchy(full: bool = False, actor: str = SYSTEM_ACTOR):
    """
    Recompute materialized level/path columns.
    """
    try:
        logger.info(f"Starting category hierarchy rebuild (full={full})")

        db_session = SessionLocal()
        try:
            updated = CategoryService(db_session).rebuild_hierarchy(full=full, actor=actor)
            return {"status": "success", "full": full, "updated": updated}
        finally:
            db_session.close()
    except Exception as e:
        logger.exception(f"Error rebuilding category hierarchy: {str(e)}")
        return {"status": "error", "message": str(e)}
