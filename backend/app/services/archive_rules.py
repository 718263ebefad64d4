"""Pure rules for job lifecycle and year-partitioned archival."""
from __future__ import annotations

from datetime import date, datetime

from .numbering_rules import to_gregorian_date, year_of

JOB_STATUSES: tuple[str, ...] = (
    "RECEIVED",
    "IN_PROGRESS",
    "WAITING_QUOTATION",
    "WAITING_APPROVE",
    "PENDING_PARTS",
    "IN_REPAIR_PROCESS",
    "DONE",
    "WAITING_CUSTOMER_PICKUP",
    "CLOSED",
)

JOB_DEPARTMENTS: tuple[str, ...] = ("CAR_SERVICE", "COMMONRAIL", "MECHANIC", "OUTSOURCE")

PAYMENT_STATUSES: tuple[str, ...] = ("PAID", "UNPAID")

ARCHIVE_COLLECTION_PREFIX = "jobsArchive_"

# Job columns copied verbatim into the archive record.
ARCHIVED_JOB_FIELDS: tuple[str, ...] = (
    "department",
    "customer_id",
    "customer_snapshot",
    "description",
    "photos",
    "technical_report",
    "assignee_uid",
    "assignee_name",
    "created_at",
    "last_activity_at",
)


def archive_collection_name(year: int) -> str:
    return f"{ARCHIVE_COLLECTION_PREFIX}{year}"


def archive_collection_for(closed_date: date | datetime | str) -> str:
    return archive_collection_name(year_of(closed_date))


def coerce_date(value: date | datetime | str) -> date:
    """Accept a date, datetime or ``YYYY-MM-DD...`` string; return a Gregorian date."""
    return to_gregorian_date(value)


def normalize_payment_status(value: str | None) -> str:
    """Default missing payment status to UNPAID; reject unknown values."""
    status = (value or "UNPAID").strip().upper()
    if status not in PAYMENT_STATUSES:
        raise ValueError(f"Unsupported payment status: {value}")
    return status


def ensure_job_status(status: str) -> str:
    if status not in JOB_STATUSES:
        raise ValueError(f"Unsupported job status: {status}")
    return status


def clamp_migration_limit(limit: int | None, *, maximum: int) -> int:
    """Clamp a requested sweep size into ``1..maximum``; missing means maximum."""
    if not limit or limit <= 0:
        return maximum
    return min(int(limit), maximum)
