"""document numbering, live jobs and year-partitioned job archive

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

DOC_TYPES = "'QUOTATION', 'DELIVERY_NOTE', 'TAX_INVOICE', 'RECEIPT', 'BILLING_NOTE', 'CREDIT_NOTE', 'WITHHOLDING_TAX'"
DOC_STATUSES = "'DRAFT', 'PENDING_REVIEW', 'APPROVED', 'SUBMITTED', 'UNPAID', 'PARTIAL', 'PAID', 'REJECTED', 'CANCELLED'"
JOB_STATUSES = (
    "'RECEIVED', 'IN_PROGRESS', 'WAITING_QUOTATION', 'WAITING_APPROVE', 'PENDING_PARTS', "
    "'IN_REPAIR_PROCESS', 'DONE', 'WAITING_CUSTOMER_PICKUP', 'CLOSED'"
)
JOB_DEPARTMENTS = "'CAR_SERVICE', 'COMMONRAIL', 'MECHANIC', 'OUTSOURCE'"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("department", sa.String(30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("role IN ('ADMIN', 'MANAGER', 'OFFICER', 'WORKER', 'VIEWER')", name="chk_user_role"),
        sa.CheckConstraint(
            "department IS NULL OR department IN "
            "('MANAGEMENT', 'OFFICE', 'CAR_SERVICE', 'COMMONRAIL', 'MECHANIC', 'OUTSOURCE')",
            name="chk_user_department",
        ),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_department", "users", ["department"])

    op.create_table(
        "document_settings",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("quotation_prefix", sa.String(20), nullable=True),
        sa.Column("delivery_note_prefix", sa.String(20), nullable=True),
        sa.Column("tax_invoice_prefix", sa.String(20), nullable=True),
        sa.Column("receipt_prefix", sa.String(20), nullable=True),
        sa.Column("billing_note_prefix", sa.String(20), nullable=True),
        sa.Column("credit_note_prefix", sa.String(20), nullable=True),
        sa.Column("withholding_tax_prefix", sa.String(20), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "document_counters",
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("sequences", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("quotation", sa.Integer(), nullable=True),
        sa.Column("delivery_note", sa.Integer(), nullable=True),
        sa.Column("tax_invoice", sa.Integer(), nullable=True),
        sa.Column("receipt", sa.Integer(), nullable=True),
        sa.Column("billing_note", sa.Integer(), nullable=True),
        sa.Column("credit_note", sa.Integer(), nullable=True),
        sa.Column("withholding_tax", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("doc_no", sa.String(60), nullable=False),
        sa.Column("doc_type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="DRAFT"),
        sa.Column("doc_date", sa.Date(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=True),
        sa.Column("customer_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_by_uid", sa.Uuid(), nullable=True),
        sa.Column("created_by_name", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("doc_type", "doc_no", name="uq_document_type_no"),
        sa.CheckConstraint(f"doc_type IN ({DOC_TYPES})", name="chk_document_type"),
        sa.CheckConstraint(f"status IN ({DOC_STATUSES})", name="chk_document_status"),
    )
    op.create_index("ix_documents_doc_no", "documents", ["doc_no"])
    op.create_index("ix_documents_doc_type", "documents", ["doc_type"])
    op.create_index("ix_documents_job_id", "documents", ["job_id"])

    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("department", sa.String(30), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="RECEIVED"),
        sa.Column("customer_id", sa.String(100), nullable=True),
        sa.Column("customer_snapshot", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("photos", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("technical_report", sa.Text(), nullable=True),
        sa.Column("assignee_uid", sa.Uuid(), nullable=True),
        sa.Column("assignee_name", sa.String(255), nullable=True),
        sa.Column("sales_doc_id", sa.Uuid(), nullable=True),
        sa.Column("sales_doc_type", sa.String(30), nullable=True),
        sa.Column("sales_doc_no", sa.String(60), nullable=True),
        sa.Column("closed_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(f"status IN ({JOB_STATUSES})", name="chk_job_status"),
        sa.CheckConstraint(f"department IN ({JOB_DEPARTMENTS})", name="chk_job_department"),
    )
    op.create_index("ix_jobs_department", "jobs", ["department"])
    op.create_index("ix_jobs_status", "jobs", ["status"])

    op.create_table(
        "job_activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("user_name", sa.String(255), nullable=True),
        sa.Column("photos", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_job_activities_job_id", "job_activities", ["job_id"])
    op.create_index("ix_job_activities_created_at", "job_activities", ["created_at"])

    op.create_table(
        "archived_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("archive_collection", sa.String(40), nullable=False),
        sa.Column("original_job_id", sa.Uuid(), nullable=False),
        sa.Column("department", sa.String(30), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="CLOSED"),
        sa.Column("customer_id", sa.String(100), nullable=True),
        sa.Column("customer_snapshot", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("photos", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("technical_report", sa.Text(), nullable=True),
        sa.Column("assignee_uid", sa.Uuid(), nullable=True),
        sa.Column("assignee_name", sa.String(255), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("archived_at_date", sa.Date(), nullable=True),
        sa.Column("archived_by_uid", sa.Uuid(), nullable=True),
        sa.Column("archived_by_name", sa.String(255), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_date", sa.Date(), nullable=True),
        sa.Column("closed_by_uid", sa.Uuid(), nullable=True),
        sa.Column("closed_by_name", sa.String(255), nullable=True),
        sa.Column("sales_doc_type", sa.String(30), nullable=True),
        sa.Column("sales_doc_id", sa.Uuid(), nullable=True),
        sa.Column("sales_doc_no", sa.String(60), nullable=True),
        sa.Column("payment_status_at_close", sa.String(10), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("status = 'CLOSED'", name="chk_archived_job_closed"),
        sa.CheckConstraint(
            "payment_status_at_close IS NULL OR payment_status_at_close IN ('PAID', 'UNPAID')",
            name="chk_archived_job_payment_status",
        ),
    )
    op.create_index("ix_archived_jobs_archive_collection", "archived_jobs", ["archive_collection"])
    op.create_index(
        "idx_archived_jobs_collection_closed",
        "archived_jobs",
        ["archive_collection", "closed_date"],
    )

    op.create_table(
        "archived_job_activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("archive_collection", sa.String(40), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("user_name", sa.String(255), nullable=True),
        sa.Column("photos", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_archived_job_activities_archive_collection",
        "archived_job_activities",
        ["archive_collection"],
    )
    op.create_index("ix_archived_job_activities_job_id", "archived_job_activities", ["job_id"])


def downgrade() -> None:
    op.drop_table("archived_job_activities")
    op.drop_table("archived_jobs")
    op.drop_table("job_activities")
    op.drop_table("jobs")
    op.drop_table("documents")
    op.drop_table("document_counters")
    op.drop_table("document_settings")
    op.drop_table("users")
