"""RFC 7807 Problem Details rendering for domain errors."""
from __future__ import annotations

from http import HTTPStatus

from fastapi.responses import JSONResponse

from .domain_errors import DomainError

PROBLEM_TYPE_BASE = "https://api.job-archive.local/problems/"
RETRY_AFTER_SECONDS = 1


def build_problem_details_response(exc: DomainError) -> JSONResponse:
    """Render a DomainError as ``application/problem+json`` with its stable code.

    Errors flagged ``retryable`` in their details (contention) also carry a
    ``Retry-After`` header.
    """
    try:
        title = HTTPStatus(exc.http_status).phrase
    except ValueError:
        title = "Domain Error"

    payload: dict[str, object] = {
        "type": f"{PROBLEM_TYPE_BASE}{exc.code.lower()}",
        "title": title,
        "status": exc.http_status,
        "detail": exc.message,
        "code": exc.code,
    }
    headers: dict[str, str] = {}
    if exc.details is not None:
        payload["details"] = exc.details
        if exc.details.get("retryable"):
            headers["Retry-After"] = str(RETRY_AFTER_SECONDS)

    return JSONResponse(
        status_code=exc.http_status,
        content=payload,
        media_type="application/problem+json",
        headers=headers or None,
    )
