"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class DuplicateNumberError(DomainError):
    """A manually supplied document number is already taken for its type."""

    def __init__(self, *, doc_type: str, doc_no: str) -> None:
        super().__init__(
            code="DOCUMENT_NUMBER_DUPLICATE",
            http_status=409,
            message=f"Document number '{doc_no}' is already used for {doc_type}",
            details={"doc_type": doc_type, "doc_no": doc_no},
        )


class ConfigMissingError(DomainError):
    """Document prefix settings have not been configured."""

    def __init__(self, message: str = "Document settings not found. Configure document prefixes first.") -> None:
        super().__init__(
            code="DOCUMENT_SETTINGS_MISSING",
            http_status=412,
            message=message,
        )


class TransactionContentionError(DomainError):
    """Optimistic transaction kept conflicting; safe for the caller to retry."""

    def __init__(self, *, attempts: int) -> None:
        super().__init__(
            code="TRANSACTION_CONTENTION",
            http_status=409,
            message=f"Transaction conflicted with concurrent writers after {attempts} attempts",
            details={"attempts": attempts, "retryable": True},
        )


class PermissionDeniedError(DomainError):
    def __init__(self, message: str = "Insufficient permissions.") -> None:
        super().__init__(code="PERMISSION_DENIED", http_status=403, message=message)


class JobNotFoundError(DomainError):
    """Job is neither in the live store nor in any archive partition."""

    def __init__(self, job_id: Any) -> None:
        super().__init__(
            code="JOB_NOT_FOUND",
            http_status=404,
            message=f"Job {job_id} not found.",
            details={"job_id": str(job_id)},
        )
