"""SQLAlchemy models for document numbering, live jobs and the job archive."""
from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, Date, DateTime, Index, Integer, String, Text,
    UniqueConstraint, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
import uuid

from .database import Base
from .services.archive_rules import JOB_DEPARTMENTS, JOB_STATUSES, PAYMENT_STATUSES
from .services.numbering_rules import DOC_NO_MAX_LENGTH, DOC_STATUSES, DOC_TYPES

JSONType = JSON().with_variant(JSONB(), "postgresql")

USER_ROLES = ("ADMIN", "MANAGER", "OFFICER", "WORKER", "VIEWER")
USER_DEPARTMENTS = ("MANAGEMENT", "OFFICE", "CAR_SERVICE", "COMMONRAIL", "MECHANIC", "OUTSOURCE")


def _in(column_name: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column_name} IN ({quoted})"


class User(Base):
    """User profile (read-only collaborator used for permission checks)."""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, index=True)
    department = Column(String(30), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Monotonically increasing version used to revoke previously issued tokens.
    token_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(_in("role", USER_ROLES), name="chk_user_role"),
        CheckConstraint(
            "department IS NULL OR " + _in("department", USER_DEPARTMENTS),
            name="chk_user_department",
        ),
    )


class DocumentSettings(Base):
    """Configured number prefix per document type (single row, id='documents')."""
    __tablename__ = "document_settings"

    id = Column(String(50), primary_key=True, default="documents")
    quotation_prefix = Column(String(20), nullable=True)
    delivery_note_prefix = Column(String(20), nullable=True)
    tax_invoice_prefix = Column(String(20), nullable=True)
    receipt_prefix = Column(String(20), nullable=True)
    billing_note_prefix = Column(String(20), nullable=True)
    credit_note_prefix = Column(String(20), nullable=True)
    withholding_tax_prefix = Column(String(20), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class DocumentCounter(Base):
    """Per-year counters keyed by ``DOC_TYPE:prefix``.

    ``version`` is checked on every UPDATE so two writers that read the same
    state cannot both commit.
    """
    __tablename__ = "document_counters"

    year = Column(Integer, primary_key=True, autoincrement=False)
    sequences = Column(JSONType, nullable=False, default=dict)
    # Legacy per-type mirrors kept for older readers.
    quotation = Column(Integer, nullable=True)
    delivery_note = Column(Integer, nullable=True)
    tax_invoice = Column(Integer, nullable=True)
    receipt = Column(Integer, nullable=True)
    billing_note = Column(Integer, nullable=True)
    credit_note = Column(Integer, nullable=True)
    withholding_tax = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}


class Document(Base):
    """Numbered business document (quotation, invoice, receipt, ...)."""
    __tablename__ = "documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    doc_no = Column(String(DOC_NO_MAX_LENGTH), nullable=False, index=True)
    doc_type = Column(String(30), nullable=False, index=True)
    status = Column(String(30), nullable=False, default="DRAFT")
    doc_date = Column(Date, nullable=False)
    # Not a FK: the job may have moved to the archive.
    job_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    customer_snapshot = Column(JSONType, nullable=True)
    payload = Column(JSONType, nullable=False, default=dict)
    created_by_uid = Column(Uuid(as_uuid=True), nullable=True)
    created_by_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("doc_type", "doc_no", name="uq_document_type_no"),
        CheckConstraint(_in("doc_type", DOC_TYPES), name="chk_document_type"),
        CheckConstraint(_in("status", DOC_STATUSES), name="chk_document_status"),
    )


class Job(Base):
    """Live job (repair order) in the working set."""
    __tablename__ = "jobs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    department = Column(String(30), nullable=False, index=True)
    status = Column(String(30), nullable=False, default="RECEIVED", index=True)
    customer_id = Column(String(100), nullable=True)
    customer_snapshot = Column(JSONType, nullable=False, default=dict)
    description = Column(Text, nullable=True)
    photos = Column(JSONType, nullable=False, default=list)
    technical_report = Column(Text, nullable=True)
    assignee_uid = Column(Uuid(as_uuid=True), nullable=True)
    assignee_name = Column(String(255), nullable=True)
    sales_doc_id = Column(Uuid(as_uuid=True), nullable=True)
    sales_doc_type = Column(String(30), nullable=True)
    sales_doc_no = Column(String(60), nullable=True)
    closed_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_activity_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(_in("status", JOB_STATUSES), name="chk_job_status"),
        CheckConstraint(_in("department", JOB_DEPARTMENTS), name="chk_job_department"),
    )


class JobActivity(Base):
    """Append-only log entry of a live job."""
    __tablename__ = "job_activities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Not a FK: entries may outlive the job row while an archival move is in flight.
    job_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    text = Column(Text, nullable=False)
    user_id = Column(Uuid(as_uuid=True), nullable=True)
    user_name = Column(String(255), nullable=True)
    photos = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class ArchivedJob(Base):
    """Closed job copied into its year partition (``archive_collection``)."""
    __tablename__ = "archived_jobs"

    # Same id as the live job, so re-archiving upserts instead of duplicating.
    id = Column(Uuid(as_uuid=True), primary_key=True)
    archive_collection = Column(String(40), nullable=False, index=True)
    original_job_id = Column(Uuid(as_uuid=True), nullable=False)
    department = Column(String(30), nullable=False)
    status = Column(String(30), nullable=False, default="CLOSED")
    customer_id = Column(String(100), nullable=True)
    customer_snapshot = Column(JSONType, nullable=False, default=dict)
    description = Column(Text, nullable=True)
    photos = Column(JSONType, nullable=False, default=list)
    technical_report = Column(Text, nullable=True)
    assignee_uid = Column(Uuid(as_uuid=True), nullable=True)
    assignee_name = Column(String(255), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=True)
    archived_at = Column(DateTime(timezone=True), nullable=False)
    archived_at_date = Column(Date, nullable=True)
    archived_by_uid = Column(Uuid(as_uuid=True), nullable=True)
    archived_by_name = Column(String(255), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_date = Column(Date, nullable=True)
    closed_by_uid = Column(Uuid(as_uuid=True), nullable=True)
    closed_by_name = Column(String(255), nullable=True)
    sales_doc_type = Column(String(30), nullable=True)
    sales_doc_id = Column(Uuid(as_uuid=True), nullable=True)
    sales_doc_no = Column(String(60), nullable=True)
    payment_status_at_close = Column(String(10), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("status = 'CLOSED'", name="chk_archived_job_closed"),
        CheckConstraint(
            "payment_status_at_close IS NULL OR " + _in("payment_status_at_close", PAYMENT_STATUSES),
            name="chk_archived_job_payment_status",
        ),
        Index("idx_archived_jobs_collection_closed", "archive_collection", "closed_date"),
    )


class ArchivedJobActivity(Base):
    """Activity entry copied into the archive partition of its job."""
    __tablename__ = "archived_job_activities"

    # Same id as the live entry; copies are keyed by it and therefore idempotent.
    id = Column(Uuid(as_uuid=True), primary_key=True)
    archive_collection = Column(String(40), nullable=False, index=True)
    job_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    text = Column(Text, nullable=False)
    user_id = Column(Uuid(as_uuid=True), nullable=True)
    user_name = Column(String(255), nullable=True)
    photos = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=True)
