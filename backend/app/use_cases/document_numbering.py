"""Document issuing use-cases: sequential numbering with optimistic counters."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain_errors import ConfigMissingError, DomainError, DuplicateNumberError
from ..models import Document, DocumentCounter, DocumentSettings, Job, JobActivity, User
from ..services.archive_rules import ensure_job_status
from ..services.numbering_rules import (
    DOC_NO_MAX_LENGTH,
    LEGACY_COUNTER_FIELDS,
    PREFIX_SETTING_FIELDS,
    DocumentPrefixSettings,
    counter_key,
    doc_no_pattern,
    ensure_doc_type,
    format_doc_no,
    highest_sequence,
    to_gregorian_date,
    year_of,
)
from ..services.transactions import is_unique_violation, run_in_transaction

logger = logging.getLogger(__name__)

DOCUMENT_SETTINGS_ID = "documents"
# Issuing one of these for a job makes it the job's linked sales document.
SALES_DOC_TYPES: tuple[str, ...] = ("DELIVERY_NOTE", "TAX_INVOICE")


@dataclass(frozen=True)
class DocumentDraft:
    """Caller-supplied content of a document that is about to be numbered."""

    doc_type: str
    doc_date: date
    job_id: UUID | None = None
    new_job_status: str | None = None
    customer_snapshot: dict[str, Any] | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IssuedDocument:
    document_id: UUID
    doc_no: str
    warnings: tuple[str, ...] = ()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_prefix_settings(db: Session) -> DocumentPrefixSettings:
    """Read the settings record once and freeze it into a prefix struct."""
    record = db.get(DocumentSettings, DOCUMENT_SETTINGS_ID)
    if record is None:
        raise ConfigMissingError()
    return DocumentPrefixSettings(
        prefixes={
            doc_type: getattr(record, column)
            for doc_type, column in PREFIX_SETTING_FIELDS.items()
        }
    )


def _highest_existing_sequence(db: Session, *, doc_type: str, prefix: str, year: int) -> int:
    rows = db.query(Document.doc_no).filter(
        Document.doc_type == doc_type,
        Document.doc_no.like(doc_no_pattern(prefix, year), escape="\\"),
    ).all()
    return highest_sequence((row[0] for row in rows), prefix=prefix, year=year)


def _doc_no_taken(db: Session, *, doc_type: str, doc_no: str) -> bool:
    return db.query(Document.id).filter(
        Document.doc_type == doc_type,
        Document.doc_no == doc_no,
    ).first() is not None


def _touch_linked_job(
    db: Session,
    *,
    draft: DocumentDraft,
    document: Document,
    actor: User,
    activity_text: str,
    now: datetime,
) -> list[str]:
    """Update the linked job inside the caller's transaction; return warnings."""
    if draft.job_id is None:
        return []

    job = db.get(Job, draft.job_id)
    if job is None:
        logger.warning(
            "Linked job %s not found while issuing %s %s; job update skipped",
            draft.job_id,
            document.doc_type,
            document.doc_no,
        )
        return [f"Linked job {draft.job_id} not found; job status and activity were not updated"]

    if draft.new_job_status:
        job.status = ensure_job_status(draft.new_job_status)
        job.last_activity_at = now
    if document.doc_type in SALES_DOC_TYPES:
        job.sales_doc_id = document.id
        job.sales_doc_type = document.doc_type
        job.sales_doc_no = document.doc_no

    db.add(
        JobActivity(
            id=uuid4(),
            job_id=job.id,
            text=activity_text,
            user_id=actor.id,
            user_name=actor.display_name,
            photos=[],
            created_at=now,
        )
    )
    return []


def _new_document(*, draft: DocumentDraft, doc_no: str, actor: User) -> Document:
    return Document(
        id=uuid4(),
        doc_no=doc_no,
        doc_type=draft.doc_type,
        status="DRAFT",
        doc_date=to_gregorian_date(draft.doc_date),
        job_id=draft.job_id,
        customer_snapshot=draft.customer_snapshot,
        payload=dict(draft.payload or {}),
        created_by_uid=actor.id,
        created_by_name=actor.display_name,
    )


def _issue_manual(
    *,
    db: Session,
    draft: DocumentDraft,
    actor: User,
    manual_doc_no: str,
    now: Callable[[], datetime],
) -> IssuedDocument:
    doc_no = manual_doc_no.strip()
    if not doc_no:
        raise DomainError(
            code="DOCUMENT_NUMBER_INVALID",
            http_status=400,
            message="Manual document number must not be blank",
        )
    if len(doc_no) > DOC_NO_MAX_LENGTH:
        raise DomainError(
            code="DOCUMENT_NUMBER_INVALID",
            http_status=400,
            message=f"Manual document number must be at most {DOC_NO_MAX_LENGTH} characters",
            details={"doc_no": doc_no, "max_length": DOC_NO_MAX_LENGTH},
        )
    if _doc_no_taken(db, doc_type=draft.doc_type, doc_no=doc_no):
        raise DuplicateNumberError(doc_type=draft.doc_type, doc_no=doc_no)

    document = _new_document(draft=draft, doc_no=doc_no, actor=actor)
    db.add(document)
    warnings = _touch_linked_job(
        db,
        draft=draft,
        document=document,
        actor=actor,
        activity_text=f"Created {draft.doc_type} document: {doc_no} (backfilled)",
        now=now(),
    )
    try:
        db.commit()
    except IntegrityError as error:
        db.rollback()
        if not is_unique_violation(error):
            raise
        # A concurrent writer took the same number between the check and the commit.
        raise DuplicateNumberError(doc_type=draft.doc_type, doc_no=doc_no) from error
    except Exception:
        db.rollback()
        raise

    logger.info("Issued backfilled %s %s (document %s)", draft.doc_type, doc_no, document.id)
    return IssuedDocument(document_id=document.id, doc_no=doc_no, warnings=tuple(warnings))


def _allocate_and_write(
    db: Session,
    *,
    draft: DocumentDraft,
    actor: User,
    prefix: str,
    year: int,
    now: Callable[[], datetime],
) -> IssuedDocument:
    """One optimistic attempt: read counter, mint number, write everything."""
    key = counter_key(draft.doc_type, prefix)

    counter = db.get(DocumentCounter, year)
    if counter is None:
        counter = DocumentCounter(year=year, sequences={})
        db.add(counter)

    stored = (counter.sequences or {}).get(key)
    if stored is None:
        # First use of this prefix in the year: baseline from numbers already on file.
        stored = _highest_existing_sequence(db, doc_type=draft.doc_type, prefix=prefix, year=year)

    sequence = int(stored) + 1
    doc_no = format_doc_no(prefix, year, sequence)
    if _doc_no_taken(db, doc_type=draft.doc_type, doc_no=doc_no):
        # A backfilled number bypassed the counter; skip past everything on file.
        baseline = _highest_existing_sequence(db, doc_type=draft.doc_type, prefix=prefix, year=year)
        sequence = max(int(stored), baseline) + 1
        doc_no = format_doc_no(prefix, year, sequence)
        logger.warning(
            "Counter %s/%s was behind existing documents; re-baselined to %s",
            year,
            key,
            sequence,
        )

    document = _new_document(draft=draft, doc_no=doc_no, actor=actor)
    db.add(document)

    counter.sequences = {**(counter.sequences or {}), key: sequence}
    legacy_field = LEGACY_COUNTER_FIELDS[draft.doc_type]
    setattr(counter, legacy_field, max(getattr(counter, legacy_field) or 0, sequence))

    warnings = _touch_linked_job(
        db,
        draft=draft,
        document=document,
        actor=actor,
        activity_text=f"Created {draft.doc_type} document: {doc_no}",
        now=now(),
    )
    return IssuedDocument(document_id=document.id, doc_no=doc_no, warnings=tuple(warnings))


def issue_document_use_case(
    *,
    db: Session,
    draft: DocumentDraft,
    actor: User,
    prefixes: DocumentPrefixSettings | None,
    manual_doc_no: str | None = None,
    attempts: int = 5,
    backoff_seconds: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
    now: Callable[[], datetime] = _utcnow,
) -> IssuedDocument:
    """Create a document and mint its number.

    With ``manual_doc_no`` the number is taken as-is after a duplicate check
    and the counter is left untouched. Otherwise the next number for
    ``(doc_type, prefix, year)`` is allocated in an optimistic transaction
    that also writes the document and the linked job update; conflicting
    commits are retried up to ``attempts`` times.
    """
    try:
        ensure_doc_type(draft.doc_type)
        to_gregorian_date(draft.doc_date)
        if draft.new_job_status:
            ensure_job_status(draft.new_job_status)
    except ValueError as error:
        raise DomainError(
            code="DOCUMENT_INVALID_REQUEST",
            http_status=400,
            message=str(error),
        ) from error

    if manual_doc_no:
        return _issue_manual(db=db, draft=draft, actor=actor, manual_doc_no=manual_doc_no, now=now)

    if prefixes is None:
        raise ConfigMissingError()

    year = year_of(draft.doc_date)
    prefix = prefixes.prefix_for(draft.doc_type)

    issued = run_in_transaction(
        db,
        lambda session: _allocate_and_write(
            session,
            draft=draft,
            actor=actor,
            prefix=prefix,
            year=year,
            now=now,
        ),
        attempts=attempts,
        backoff_seconds=backoff_seconds,
        sleep=sleep,
    )
    logger.info(
        "Issued %s %s (document %s, job %s)",
        draft.doc_type,
        issued.doc_no,
        issued.document_id,
        draft.job_id,
    )
    return issued
