import click
import uvicorn
from app.core.logging import get_logger
from app.db.base import SessionLocal
from app.services.category_service import SYSTEM_ACTOR, CategoryService
from app.worker.celery_app import celery_app

logger = get_logger(__name__)


@click.group()
def cli():
    """Category service CLI"""
    pass


@cli.command()
@click.option("--host", default="0.0.0.0")
@click.option("--port", default=8000)
@click.option("--workers", default=1)
@click.option("--production", is_flag=True, help="Run in production mode")
def serve(host, port, workers, production):
    """Start the API server"""
    reload = not production  # Auto-reload unless production mode

    uvicorn.run(
        "app.api.web_app:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers if production else 1,
        log_level="info" if production else "debug",
    )


@cli.command("rebuild-hierarchy")
@click.option("--full", is_flag=True, help="Recompute every node, not only roots, and reconcile counters")
@click.option("--actor", default=SYSTEM_ACTOR, help="Identity recorded in updated_by")
@click.option("--async", "run_async", is_flag=True, help="Submit to the Celery worker instead of running inline")
def rebuild_hierarchy(full, actor, run_async):
    """Recompute materialized category levels and paths"""
    if run_async:
        from app.worker.tasks.maintenance import rebuild_hierarchy as rebuild_task

        result = rebuild_task.delay(full, actor)
        click.echo(f"Task submitted: {result.id}")
        return

    db_session = SessionLocal()
    try:
        updated = CategoryService(db_session).rebuild_hierarchy(full=full, actor=actor)
    finally:
        db_session.close()
    click.echo(f"Rebuilt hierarchy (full={full}): {updated} categories updated")


@cli.command("reconcile-counters")
@click.option("--async", "run_async", is_flag=True, help="Submit to the Celery worker instead of running inline")
def reconcile_counters(run_async):
    """Recompute children and product counters from the database"""
    if run_async:
        from app.worker.tasks.maintenance import reconcile_counters as reconcile_task

        result = reconcile_task.delay()
        click.echo(f"Task submitted: {result.id}")
        return

    db_session = SessionLocal()
    try:
        corrected = CategoryService(db_session).reconcile_counters()
    finally:
        db_session.close()
    click.echo(f"Reconciled counters: {corrected} categories corrected")


if __name__ == "__main__":
    cli()
