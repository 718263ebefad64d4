"""
Celery worker draining the closed-job backlog and finishing interrupted activity moves.
"""
from celery import Celery
import logging
from .config import settings
from .database import SessionLocal
from .models import ArchivedJob, JobActivity
from .use_cases.job_archive import ArchiveActor, migrate_closed_jobs_use_case, move_job_activities

logger = logging.getLogger(__name__)

celery_app = Celery(
    "job_archive",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


def _system_actor() -> ArchiveActor:
    return ArchiveActor(display_name=settings.MIGRATION_ACTOR_NAME)


def drain_backlog(db, *, max_rounds: int, batch_size: int) -> dict:
    """Run migration rounds until nothing is left or a round makes no progress."""
    totals = {"rounds": 0, "migrated": 0, "skipped": 0, "errors": 0}
    for _ in range(max_rounds):
        report = migrate_closed_jobs_use_case(
            db=db,
            actor=_system_actor(),
            limit=batch_size,
            max_limit=settings.MIGRATION_MAX_LIMIT,
            fallback_year=settings.MIGRATION_ARCHIVE_YEAR,
            chunk_size=settings.ARCHIVE_ACTIVITY_CHUNK_SIZE,
        )
        totals["rounds"] += 1
        totals["migrated"] += report.migrated
        totals["skipped"] += report.skipped
        totals["errors"] += len(report.errors)
        if report.total_found == 0 or report.migrated + report.skipped == 0:
            break
    return totals


def resume_orphaned_moves(db, *, limit: int = 100) -> dict:
    """Finish activity moves for jobs whose main record already reached the archive."""
    rows = (
        db.query(ArchivedJob.id, ArchivedJob.archive_collection)
        .join(JobActivity, JobActivity.job_id == ArchivedJob.id)
        .distinct()
        .limit(limit)
        .all()
    )
    resumed = failed = 0
    for job_id, archive_collection in rows:
        try:
            move_job_activities(
                db,
                job_id=job_id,
                archive_collection=archive_collection,
                chunk_size=settings.ARCHIVE_ACTIVITY_CHUNK_SIZE,
            )
            resumed += 1
        except Exception:
            failed += 1
            logger.exception("Resuming activity move for archived job %s failed", job_id)
    return {"found": len(rows), "resumed": resumed, "failed": failed}


@celery_app.task(name="drain_closed_job_backlog")
def drain_closed_job_backlog(max_rounds: int | None = None):
    """Archive CLOSED jobs left in the live store, one bounded batch per round."""
    db = SessionLocal()
    try:
        totals = drain_backlog(
            db,
            max_rounds=max_rounds or settings.BACKLOG_DRAIN_MAX_ROUNDS,
            batch_size=settings.MIGRATION_MAX_LIMIT,
        )
        logger.info(
            "Backlog drain finished after %s round(s): %s migrated, %s skipped, %s errors",
            totals["rounds"],
            totals["migrated"],
            totals["skipped"],
            totals["errors"],
        )
        return totals
    finally:
        db.close()


@celery_app.task(name="resume_orphaned_activity_moves")
def resume_orphaned_activity_moves(limit: int = 100):
    """Re-run the chunked activity move for already archived jobs."""
    db = SessionLocal()
    try:
        result = resume_orphaned_moves(db, limit=limit)
        if result["found"]:
            logger.info(
                "Resumed activity moves: %s found, %s finished, %s failed",
                result["found"],
                result["resumed"],
                result["failed"],
            )
        return result
    finally:
        db.close()


# Schedule periodic processing
celery_app.conf.beat_schedule = {
    'drain-closed-job-backlog': {
        'task': 'drain_closed_job_backlog',
        'schedule': settings.BACKLOG_DRAIN_INTERVAL_SECONDS,
    },
    'resume-orphaned-activity-moves': {
        'task': 'resume_orphaned_activity_moves',
        'schedule': 600.0,  # every 10 minutes
    },
}
