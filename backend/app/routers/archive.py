"""Job closing and archive migration endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import (
    CloseJobRequest,
    CloseJobResponse,
    MigrateClosedJobsRequest,
    MigrateClosedJobsResponse,
    MigrationErrorItem,
)
from ..services.archive_rules import clamp_migration_limit
from ..use_cases.job_archive import close_job_after_accounting_use_case, migrate_closed_jobs_use_case

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/archive", tags=["archive"])


@router.post("/close-job", response_model=CloseJobResponse)
def close_job(
    data: CloseJobRequest,
    current_user: User = Depends(PermissionChecker("canCloseJobs")),
    db: Session = Depends(get_db)
):
    """Close a job after accounting and move it into its year archive."""
    outcome = close_job_after_accounting_use_case(
        db=db,
        job_id=data.job_id,
        payment_status=data.payment_status,
        actor=current_user,
        chunk_size=settings.ARCHIVE_ACTIVITY_CHUNK_SIZE,
    )
    return CloseJobResponse(
        job_id=outcome.job_id,
        archived_collection=outcome.archive_collection,
        already_closed=outcome.already_archived,
        activities_moved=outcome.activities_moved,
        activities_complete=outcome.activities_complete,
    )


@router.post("/migrate-closed-jobs-2026", response_model=MigrateClosedJobsResponse)
def migrate_closed_jobs(
    data: MigrateClosedJobsRequest,
    current_user: User = Depends(PermissionChecker("canMigrateArchive")),
    db: Session = Depends(get_db)
):
    """Sweep CLOSED jobs left in the live store into the archive."""
    limit = clamp_migration_limit(data.limit, maximum=settings.MIGRATION_MAX_LIMIT)
    logger.info("Archive migration requested by %s (limit=%s)", current_user.id, limit)
    report = migrate_closed_jobs_use_case(
        db=db,
        actor=current_user,
        limit=limit,
        max_limit=settings.MIGRATION_MAX_LIMIT,
        fallback_year=settings.MIGRATION_ARCHIVE_YEAR,
        chunk_size=settings.ARCHIVE_ACTIVITY_CHUNK_SIZE,
    )
    return MigrateClosedJobsResponse(
        total_found=report.total_found,
        migrated=report.migrated,
        skipped=report.skipped,
        errors=[MigrationErrorItem(job_id=item.job_id, error=item.message) for item in report.errors],
    )
