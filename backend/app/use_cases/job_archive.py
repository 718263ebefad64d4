"""Job closing, archival and bulk migration use-cases.

The main job row moves in one transaction (archive upsert + live delete).
The activity log moves afterwards in committed chunks; a failure there
leaves the main record archived and the remaining entries under the old
job id, where any later run picks them up again.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from ..domain_errors import DomainError, JobNotFoundError
from ..models import ArchivedJob, ArchivedJobActivity, Document, Job, JobActivity, User
from ..services.archive_rules import (
    ARCHIVED_JOB_FIELDS,
    archive_collection_for,
    archive_collection_name,
    clamp_migration_limit,
    coerce_date,
    normalize_payment_status,
)
from ..services.transactions import run_in_transaction

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 400


@dataclass(frozen=True)
class ArchiveActor:
    """Non-user actor (scheduled sweeps) recorded in archive provenance."""

    display_name: str
    id: UUID | None = None


@dataclass(frozen=True)
class SalesDocInfo:
    sales_doc_type: str | None = None
    sales_doc_id: UUID | None = None
    sales_doc_no: str | None = None
    payment_status_at_close: str | None = "UNPAID"


@dataclass(frozen=True)
class ActivityMoveResult:
    job_id: UUID
    archive_collection: str
    copied: int
    deleted: int
    chunks: int


class ActivityMoveError(Exception):
    """Chunked activity move stopped part-way; committed chunks stay moved."""

    def __init__(self, *, job_id: UUID, archive_collection: str, moved: int, chunks: int, cause: Exception):
        self.job_id = job_id
        self.archive_collection = archive_collection
        self.moved = moved
        self.chunks = chunks
        self.cause = cause
        super().__init__(
            f"Activity move for job {job_id} into {archive_collection} stopped after "
            f"{chunks} chunk(s), {moved} entries moved: {cause}"
        )


@dataclass(frozen=True)
class ArchiveOutcome:
    job_id: UUID
    archive_collection: str
    already_archived: bool = False
    activities_moved: int = 0
    activities_complete: bool = True


@dataclass(frozen=True)
class MigrationFailure:
    job_id: UUID
    message: str


@dataclass
class MigrationReport:
    total_found: int = 0
    migrated: int = 0
    skipped: int = 0
    errors: list[MigrationFailure] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def move_job_activities(
    db: Session,
    *,
    job_id: UUID,
    archive_collection: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ActivityMoveResult:
    """Copy-then-delete a job's activity log into the archive, chunk by chunk.

    Each chunk commits its copies and the deletes of their sources together
    before the next chunk is read. Copies are keyed by activity id, so the
    loop is safe to re-run for the same job after any failure.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    copied = deleted = chunks = 0
    while True:
        batch = (
            db.query(JobActivity)
            .filter(JobActivity.job_id == job_id)
            .order_by(JobActivity.created_at.asc(), JobActivity.id.asc())
            .limit(chunk_size)
            .all()
        )
        if not batch:
            break

        try:
            batch_ids = [activity.id for activity in batch]
            already_copied = {
                row[0]
                for row in db.query(ArchivedJobActivity.id).filter(
                    ArchivedJobActivity.id.in_(batch_ids),
                ).all()
            }
            for activity in batch:
                if activity.id not in already_copied:
                    db.add(
                        ArchivedJobActivity(
                            id=activity.id,
                            archive_collection=archive_collection,
                            job_id=activity.job_id,
                            text=activity.text,
                            user_id=activity.user_id,
                            user_name=activity.user_name,
                            photos=list(activity.photos or []),
                            created_at=activity.created_at,
                        )
                    )
                db.delete(activity)
            db.commit()
        except Exception as error:
            db.rollback()
            logger.error(
                "Activity move for job %s into %s failed on chunk %s; %s entries already moved",
                job_id,
                archive_collection,
                chunks + 1,
                deleted,
            )
            raise ActivityMoveError(
                job_id=job_id,
                archive_collection=archive_collection,
                moved=deleted,
                chunks=chunks,
                cause=error,
            ) from error

        copied += len(batch) - len(already_copied)
        deleted += len(batch)
        chunks += 1

    if chunks:
        logger.info(
            "Moved %s activities (%s copied) for job %s into %s in %s chunk(s)",
            deleted,
            copied,
            job_id,
            archive_collection,
            chunks,
        )
    return ActivityMoveResult(
        job_id=job_id,
        archive_collection=archive_collection,
        copied=copied,
        deleted=deleted,
        chunks=chunks,
    )


def archive_job_record(
    db: Session,
    *,
    job_id: UUID,
    archive_collection: str,
    closed_date: date | None,
    actor: User | ArchiveActor,
    sales_doc: SalesDocInfo | None,
    now: Callable[[], datetime] = _utcnow,
    attempts: int = 3,
    backoff_seconds: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Upsert the archive record and delete the live job in one transaction.

    Returns the archive collection the record lives in. Raises
    ``JobNotFoundError`` when the live job does not exist.
    """

    def _work(session: Session) -> str:
        job = session.get(Job, job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        timestamp = now()
        record = session.get(ArchivedJob, job_id)
        if record is None:
            record = ArchivedJob(id=job_id, archive_collection=archive_collection)
            session.add(record)

        for name in ARCHIVED_JOB_FIELDS:
            setattr(record, name, getattr(job, name))
        record.original_job_id = job.id
        record.status = "CLOSED"
        record.is_archived = True
        record.archived_at = timestamp
        record.archived_at_date = closed_date
        record.archived_by_uid = actor.id
        record.archived_by_name = actor.display_name
        record.closed_at = timestamp
        record.closed_date = closed_date
        record.closed_by_uid = actor.id
        record.closed_by_name = actor.display_name
        record.updated_at = timestamp

        info = sales_doc or SalesDocInfo(
            sales_doc_type=job.sales_doc_type,
            sales_doc_id=job.sales_doc_id,
            sales_doc_no=job.sales_doc_no,
            payment_status_at_close=None,
        )
        record.sales_doc_type = info.sales_doc_type
        record.sales_doc_id = info.sales_doc_id
        record.sales_doc_no = info.sales_doc_no
        record.payment_status_at_close = info.payment_status_at_close

        if info.sales_doc_id is not None:
            sales_document = session.get(Document, info.sales_doc_id)
            if sales_document is None:
                logger.warning(
                    "Sales document %s for job %s not found; archive link not updated",
                    info.sales_doc_id,
                    job_id,
                )
            else:
                sales_document.job_id = job_id
                sales_document.updated_at = timestamp

        session.delete(job)
        return record.archive_collection

    return run_in_transaction(
        db,
        _work,
        attempts=attempts,
        backoff_seconds=backoff_seconds,
        sleep=sleep,
    )


def _move_activities_logged(
    db: Session,
    *,
    job_id: UUID,
    archive_collection: str,
    chunk_size: int,
) -> tuple[int, bool]:
    try:
        result = move_job_activities(
            db,
            job_id=job_id,
            archive_collection=archive_collection,
            chunk_size=chunk_size,
        )
    except ActivityMoveError as error:
        logger.warning(
            "Job %s archived into %s but its activity log is incomplete (%s moved); "
            "re-run archival to finish",
            job_id,
            archive_collection,
            error.moved,
        )
        return error.moved, False
    return result.deleted, True


def archive_and_close_job_use_case(
    *,
    db: Session,
    job_id: UUID,
    closed_date: date | datetime | str,
    actor: User | ArchiveActor,
    sales_doc: SalesDocInfo | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    now: Callable[[], datetime] = _utcnow,
) -> ArchiveOutcome:
    """Move a job and its activity log into the archive of its close year.

    Re-running for a job that is already archived is a no-op apart from
    finishing any activity entries a previous run left behind.
    """
    try:
        closed_on = coerce_date(closed_date)
    except ValueError as error:
        raise DomainError(
            code="JOB_CLOSE_INVALID_DATE",
            http_status=400,
            message=f"Invalid closed date: {closed_date}",
        ) from error

    target_collection = archive_collection_for(closed_on)
    try:
        archive_collection = archive_job_record(
            db,
            job_id=job_id,
            archive_collection=target_collection,
            closed_date=closed_on,
            actor=actor,
            sales_doc=sales_doc,
            now=now,
        )
    except JobNotFoundError:
        existing = db.get(ArchivedJob, job_id)
        if existing is None:
            raise
        logger.info("Job %s already archived in %s", job_id, existing.archive_collection)
        moved, complete = _move_activities_logged(
            db,
            job_id=job_id,
            archive_collection=existing.archive_collection,
            chunk_size=chunk_size,
        )
        return ArchiveOutcome(
            job_id=job_id,
            archive_collection=existing.archive_collection,
            already_archived=True,
            activities_moved=moved,
            activities_complete=complete,
        )

    logger.info("Archived job %s into %s by %s", job_id, archive_collection, actor.display_name)
    moved, complete = _move_activities_logged(
        db,
        job_id=job_id,
        archive_collection=archive_collection,
        chunk_size=chunk_size,
    )
    return ArchiveOutcome(
        job_id=job_id,
        archive_collection=archive_collection,
        activities_moved=moved,
        activities_complete=complete,
    )


def close_job_after_accounting_use_case(
    *,
    db: Session,
    job_id: UUID,
    payment_status: str | None,
    actor: User,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    now: Callable[[], datetime] = _utcnow,
) -> ArchiveOutcome:
    """Close a job once accounting confirmed its sales document."""
    try:
        status_at_close = normalize_payment_status(payment_status)
    except ValueError as error:
        raise DomainError(
            code="JOB_CLOSE_INVALID_PAYMENT_STATUS",
            http_status=400,
            message=str(error),
        ) from error

    job = db.get(Job, job_id)
    if job is None:
        closed_date: date = now().date()
        sales_doc = SalesDocInfo(payment_status_at_close=status_at_close)
    else:
        closed_date = job.closed_date or now().date()
        sales_doc = SalesDocInfo(
            sales_doc_type=job.sales_doc_type,
            sales_doc_id=job.sales_doc_id,
            sales_doc_no=job.sales_doc_no,
            payment_status_at_close=status_at_close,
        )

    return archive_and_close_job_use_case(
        db=db,
        job_id=job_id,
        closed_date=closed_date,
        actor=actor,
        sales_doc=sales_doc,
        chunk_size=chunk_size,
        now=now,
    )


def _delete_stale_live_job(db: Session, job_id: UUID) -> None:
    db.query(Job).filter(Job.id == job_id).delete(synchronize_session="fetch")
    db.commit()


def migrate_closed_jobs_use_case(
    *,
    db: Session,
    actor: User | ArchiveActor,
    limit: int | None = None,
    max_limit: int = 40,
    fallback_year: int = 2026,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    now: Callable[[], datetime] = _utcnow,
) -> MigrationReport:
    """Archive up to ``limit`` CLOSED jobs still sitting in the live store.

    Every job is handled in isolation: a failure is recorded in
    ``errors`` and the sweep moves on to the next job.
    """
    effective_limit = clamp_migration_limit(limit, maximum=max_limit)
    rows = (
        db.query(Job.id, Job.closed_date)
        .filter(Job.status == "CLOSED")
        .order_by(Job.updated_at.asc(), Job.id.asc())
        .limit(effective_limit)
        .all()
    )
    report = MigrationReport(total_found=len(rows))
    if not rows:
        return report

    logger.info("Starting migration of %s closed jobs initiated by %s", len(rows), actor.display_name)

    for job_id, closed_date in rows:
        try:
            existing = db.get(ArchivedJob, job_id)
            if existing is not None and existing.is_archived:
                move_job_activities(
                    db,
                    job_id=job_id,
                    archive_collection=existing.archive_collection,
                    chunk_size=chunk_size,
                )
                _delete_stale_live_job(db, job_id)
                report.skipped += 1
                continue

            closed_on = coerce_date(closed_date) if closed_date is not None else None
            target_collection = (
                archive_collection_for(closed_on)
                if closed_on is not None
                else archive_collection_name(fallback_year)
            )
            try:
                archive_collection = archive_job_record(
                    db,
                    job_id=job_id,
                    archive_collection=target_collection,
                    closed_date=closed_on,
                    actor=actor,
                    sales_doc=None,
                    now=now,
                )
            except JobNotFoundError:
                # Archived by a concurrent close between the query and now.
                report.skipped += 1
                continue

            move_job_activities(
                db,
                job_id=job_id,
                archive_collection=archive_collection,
                chunk_size=chunk_size,
            )
            report.migrated += 1
            logger.info("Migrated job %s into %s", job_id, archive_collection)
        except Exception as error:
            db.rollback()
            logger.exception("Error migrating job %s", job_id)
            report.errors.append(
                MigrationFailure(job_id=job_id, message=str(error) or error.__class__.__name__)
            )

    logger.info(
        "Migration finished: %s migrated, %s skipped, %s errors",
        report.migrated,
        report.skipped,
        len(report.errors),
    )
    return report
