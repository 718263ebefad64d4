from __future__ import annotations

from datetime import date, datetime, timezone

from app.models import ArchivedJob, ArchivedJobActivity, Job, JobActivity
from app.use_cases import job_archive
from app.use_cases.job_archive import ArchiveActor, migrate_closed_jobs_use_case

MIGRATION_ACTOR = ArchiveActor(display_name="Migration")


def test_limit_is_capped_at_forty(db, job_factory) -> None:
    for _ in range(100):
        job_factory(status="CLOSED")

    report = migrate_closed_jobs_use_case(db=db, actor=MIGRATION_ACTOR, limit=100, max_limit=40)

    assert report.total_found == 40
    assert report.migrated == 40
    assert report.errors == []
    assert db.query(Job).count() == 60
    assert db.query(ArchivedJob).count() == 40


def test_only_closed_jobs_are_migrated(db, job_factory) -> None:
    closed = job_factory(status="CLOSED", activities=2)
    job_factory(status="DONE")
    job_factory(status="IN_PROGRESS")

    report = migrate_closed_jobs_use_case(db=db, actor=MIGRATION_ACTOR)

    assert report.total_found == 1
    assert report.migrated == 1
    assert db.get(Job, closed.id) is None
    assert db.query(ArchivedJobActivity).filter(ArchivedJobActivity.job_id == closed.id).count() == 2


def test_archive_year_follows_closed_date_with_fallback(db, job_factory) -> None:
    dated = job_factory(status="CLOSED", closed_date=date(2025, 8, 1))
    undated = job_factory(status="CLOSED")

    migrate_closed_jobs_use_case(db=db, actor=MIGRATION_ACTOR, fallback_year=2026)

    assert db.get(ArchivedJob, dated.id).archive_collection == "jobsArchive_2025"
    assert db.get(ArchivedJob, undated.id).archive_collection == "jobsArchive_2026"
    assert db.get(ArchivedJob, undated.id).archived_by_name == "Migration"


def test_one_failing_job_does_not_stop_the_sweep(db, job_factory, monkeypatch) -> None:
    jobs = [job_factory(status="CLOSED", activities=1) for _ in range(5)]
    failing_id = jobs[2].id
    real_move = job_archive.move_job_activities

    def _move(session, **kwargs):
        if kwargs["job_id"] == failing_id:
            raise RuntimeError("activity copy failed")
        return real_move(session, **kwargs)

    monkeypatch.setattr(job_archive, "move_job_activities", _move)

    report = migrate_closed_jobs_use_case(db=db, actor=MIGRATION_ACTOR)

    assert report.total_found == 5
    assert report.migrated == 4
    assert len(report.errors) == 1
    assert report.errors[0].job_id == failing_id
    assert "activity copy failed" in report.errors[0].message
    # The failed job's activity log stays behind for a later run.
    assert db.query(JobActivity).filter(JobActivity.job_id == failing_id).count() == 1


def test_already_archived_job_is_skipped_and_cleaned_up(db, job_factory) -> None:
    job = job_factory(status="CLOSED", activities=2)
    job_id = job.id
    stale_copy = ArchivedJob(
        id=job.id,
        archive_collection="jobsArchive_2025",
        original_job_id=job.id,
        department=job.department,
        status="CLOSED",
        customer_snapshot={},
        photos=[],
        is_archived=True,
        archived_at=datetime(2025, 12, 31, 17, 0, tzinfo=timezone.utc),
    )
    db.add(stale_copy)
    db.commit()

    report = migrate_closed_jobs_use_case(db=db, actor=MIGRATION_ACTOR)

    assert report.total_found == 1
    assert report.skipped == 1
    assert report.migrated == 0
    # The session must not keep serving the deleted row from its identity map.
    assert job not in db
    assert db.get(Job, job_id) is None
    db.expire_all()
    assert db.get(Job, job_id) is None
    moved = db.query(ArchivedJobActivity).filter(ArchivedJobActivity.job_id == job_id).all()
    assert {entry.archive_collection for entry in moved} == {"jobsArchive_2025"}
    assert len(moved) == 2


def test_empty_backlog_reports_zero(db) -> None:
    report = migrate_closed_jobs_use_case(db=db, actor=MIGRATION_ACTOR)

    assert report.total_found == 0
    assert report.migrated == 0
    assert report.skipped == 0
    assert report.errors == []


def test_buddhist_era_closed_date_is_stored_in_gregorian(db, job_factory) -> None:
    job = job_factory(status="CLOSED", closed_date=date(2568, 6, 1))
    job_id = job.id

    report = migrate_closed_jobs_use_case(db=db, actor=MIGRATION_ACTOR)

    assert report.migrated == 1
    record = db.get(ArchivedJob, job_id)
    assert record.archive_collection == "jobsArchive_2025"
    assert record.closed_date == date(2025, 6, 1)
    assert record.archived_at_date == date(2025, 6, 1)
