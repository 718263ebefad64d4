"""Pydantic schemas for API."""
from pydantic import BaseModel, Field
from typing import Any, Optional
from datetime import date
from uuid import UUID

from .services.numbering_rules import DOC_NO_MAX_LENGTH


# Document schemas
class DocumentCreate(BaseModel):
    doc_type: str
    doc_date: date
    manual_doc_no: Optional[str] = Field(default=None, max_length=DOC_NO_MAX_LENGTH)
    job_id: Optional[UUID] = None
    new_job_status: Optional[str] = None
    customer_snapshot: Optional[dict[str, Any]] = None
    payload: dict[str, Any] = Field(default_factory=dict)


class DocumentIssuedResponse(BaseModel):
    document_id: UUID
    doc_no: str
    warnings: list[str] = Field(default_factory=list)


# Archive schemas
class CloseJobRequest(BaseModel):
    job_id: UUID
    payment_status: Optional[str] = None


class CloseJobResponse(BaseModel):
    ok: bool = True
    job_id: UUID
    archived_collection: str
    already_closed: bool
    activities_moved: int = 0
    activities_complete: bool = True


class MigrateClosedJobsRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)


class MigrationErrorItem(BaseModel):
    job_id: UUID
    error: str


class MigrateClosedJobsResponse(BaseModel):
    ok: bool = True
    total_found: int
    migrated: int
    skipped: int
    errors: list[MigrationErrorItem] = Field(default_factory=list)
