"""Pure rules for sequential document numbers (no DB access)."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime

DOC_TYPES: tuple[str, ...] = (
    "QUOTATION",
    "DELIVERY_NOTE",
    "TAX_INVOICE",
    "RECEIPT",
    "BILLING_NOTE",
    "CREDIT_NOTE",
    "WITHHOLDING_TAX",
)

DOC_STATUSES: tuple[str, ...] = (
    "DRAFT",
    "PENDING_REVIEW",
    "APPROVED",
    "SUBMITTED",
    "UNPAID",
    "PARTIAL",
    "PAID",
    "REJECTED",
    "CANCELLED",
)

# Legacy single-field counter columns mirrored on every issue.
LEGACY_COUNTER_FIELDS: dict[str, str] = {
    "QUOTATION": "quotation",
    "DELIVERY_NOTE": "delivery_note",
    "TAX_INVOICE": "tax_invoice",
    "RECEIPT": "receipt",
    "BILLING_NOTE": "billing_note",
    "CREDIT_NOTE": "credit_note",
    "WITHHOLDING_TAX": "withholding_tax",
}

PREFIX_SETTING_FIELDS: dict[str, str] = {
    doc_type: f"{column}_prefix" for doc_type, column in LEGACY_COUNTER_FIELDS.items()
}

BUDDHIST_ERA_OFFSET = 543
# Any year at or above this is treated as a Buddhist-era year.
BUDDHIST_ERA_THRESHOLD = 2400
SEQUENCE_WIDTH = 4
# Width of the doc_no column; manual numbers longer than this are rejected.
DOC_NO_MAX_LENGTH = 60


@dataclass(frozen=True)
class DocumentPrefixSettings:
    """Snapshot of the configured prefix per document type."""

    prefixes: dict[str, str | None] = field(default_factory=dict)

    def prefix_for(self, doc_type: str) -> str:
        ensure_doc_type(doc_type)
        configured = (self.prefixes.get(doc_type) or "").strip()
        return configured or default_prefix(doc_type)


def ensure_doc_type(doc_type: str) -> str:
    if doc_type not in DOC_TYPES:
        raise ValueError(f"Unsupported document type: {doc_type}")
    return doc_type


def default_prefix(doc_type: str) -> str:
    return doc_type[:2]


def normalize_gregorian_year(year: int) -> int:
    """Convert a Buddhist-era year to Gregorian; Gregorian years pass through."""
    if year >= BUDDHIST_ERA_THRESHOLD:
        return year - BUDDHIST_ERA_OFFSET
    return year


def year_of(value: date | datetime | str) -> int:
    """Resolve the Gregorian calendar year of a date-like value.

    Strings are read from their leading ``YYYY`` component so both
    ``2025-03-01`` and ``2568-03-01`` style inputs work.
    """
    if isinstance(value, (date, datetime)):
        raw_year = value.year
    else:
        text = str(value or "").strip()
        match = re.match(r"^(\d{4})", text)
        if not match:
            raise ValueError(f"Cannot derive a year from {value!r}")
        raw_year = int(match.group(1))
    return normalize_gregorian_year(raw_year)


def to_gregorian_date(value: date | datetime | str) -> date:
    """Return the calendar date with a Buddhist-era year moved to Gregorian.

    Strings are split into their ``YYYY-MM-DD`` parts before building the
    date, so a Buddhist-era leap day such as ``2567-02-29`` parses too.
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        year, month, day = value.year, value.month, value.day
    else:
        match = re.match(r"^(\d{4})-(\d{2})-(\d{2})", str(value or "").strip())
        if not match:
            raise ValueError(f"Cannot derive a date from {value!r}")
        year, month, day = (int(part) for part in match.groups())
    return date(normalize_gregorian_year(year), month, day)


def counter_key(doc_type: str, prefix: str) -> str:
    return f"{doc_type}:{prefix}"


def format_doc_no(prefix: str, year: int, sequence: int) -> str:
    if sequence <= 0:
        raise ValueError("Sequence must be positive")
    return f"{prefix}{year}-{sequence:0{SEQUENCE_WIDTH}d}"


def doc_no_pattern(prefix: str, year: int) -> str:
    """SQL LIKE pattern matching every number issued for prefix/year."""
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}{year}-%"


def parse_sequence(doc_no: str, *, prefix: str, year: int) -> int | None:
    """Return the numeric sequence of ``doc_no`` if it belongs to prefix/year."""
    head = f"{prefix}{year}-"
    if not doc_no.startswith(head):
        return None
    tail = doc_no[len(head):]
    if not (tail.isascii() and tail.isdigit()):
        return None
    return int(tail)


def highest_sequence(doc_nos, *, prefix: str, year: int) -> int:
    """Highest sequence among ``doc_nos`` for prefix/year (0 when none match)."""
    highest = 0
    for doc_no in doc_nos:
        sequence = parse_sequence(doc_no, prefix=prefix, year=year)
        if sequence is not None and sequence > highest:
            highest = sequence
    return highest
