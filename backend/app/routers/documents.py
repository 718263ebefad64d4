"""Document endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import DocumentCreate, DocumentIssuedResponse
from ..use_cases.document_numbering import DocumentDraft, issue_document_use_case, load_prefix_settings

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", response_model=DocumentIssuedResponse, status_code=status.HTTP_201_CREATED)
def create_document(
    data: DocumentCreate,
    current_user: User = Depends(PermissionChecker("canIssueDocuments")),
    db: Session = Depends(get_db)
):
    """Create a document, allocating its number unless one is supplied."""
    manual_doc_no = (data.manual_doc_no or "").strip() or None
    prefixes = None if manual_doc_no else load_prefix_settings(db)

    issued = issue_document_use_case(
        db=db,
        draft=DocumentDraft(
            doc_type=data.doc_type,
            doc_date=data.doc_date,
            job_id=data.job_id,
            new_job_status=data.new_job_status,
            customer_snapshot=data.customer_snapshot,
            payload=data.payload,
        ),
        actor=current_user,
        prefixes=prefixes,
        manual_doc_no=manual_doc_no,
        attempts=settings.NUMBERING_MAX_ATTEMPTS,
        backoff_seconds=settings.NUMBERING_RETRY_BACKOFF_SECONDS,
    )
    return DocumentIssuedResponse(
        document_id=issued.document_id,
        doc_no=issued.doc_no,
        warnings=list(issued.warnings),
    )
