from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from app.domain_errors import ConfigMissingError, DomainError, DuplicateNumberError
from app.models import Document, DocumentCounter, Job, JobActivity
from app.use_cases.document_numbering import (
    DocumentDraft,
    issue_document_use_case,
    load_prefix_settings,
)

FIXED_NOW = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


def _issue(db, actor, prefixes, **overrides):
    manual_doc_no = overrides.pop("manual_doc_no", None)
    now = overrides.pop("now", lambda: FIXED_NOW)
    draft = DocumentDraft(
        doc_type=overrides.pop("doc_type", "QUOTATION"),
        doc_date=overrides.pop("doc_date", date(2025, 6, 1)),
        **overrides,
    )
    return issue_document_use_case(
        db=db,
        draft=draft,
        actor=actor,
        prefixes=prefixes,
        manual_doc_no=manual_doc_no,
        sleep=lambda _: None,
        now=now,
    )


def test_sequential_issues_produce_consecutive_numbers(db, officer, document_settings) -> None:
    prefixes = load_prefix_settings(db)

    first = _issue(db, officer, prefixes)
    second = _issue(db, officer, prefixes)
    invoice = _issue(db, officer, prefixes, doc_type="TAX_INVOICE")

    assert first.doc_no == "QT2025-0001"
    assert second.doc_no == "QT2025-0002"
    assert invoice.doc_no == "INV2025-0001"
    assert first.warnings == ()

    counter = db.get(DocumentCounter, 2025)
    assert counter.sequences == {"QUOTATION:QT": 2, "TAX_INVOICE:INV": 1}
    assert counter.quotation == 2
    assert counter.tax_invoice == 1


def test_each_year_has_its_own_counter(db, officer, document_settings) -> None:
    prefixes = load_prefix_settings(db)

    late = _issue(db, officer, prefixes, doc_date=date(2025, 12, 31))
    early = _issue(db, officer, prefixes, doc_date=date(2026, 1, 1))

    assert late.doc_no == "QT2025-0001"
    assert early.doc_no == "QT2026-0001"


def test_buddhist_era_date_is_numbered_in_gregorian_year(db, officer, document_settings) -> None:
    issued = _issue(db, officer, load_prefix_settings(db), doc_date=date(2568, 3, 1))

    assert issued.doc_no == "QT2025-0001"


def test_unconfigured_prefix_uses_first_two_letters(db, officer, document_settings) -> None:
    issued = _issue(db, officer, load_prefix_settings(db), doc_type="WITHHOLDING_TAX")

    assert issued.doc_no == "WI2025-0001"


def test_concurrent_issue_is_retried_and_never_duplicates(
    db, session_factory, officer, document_settings
) -> None:
    prefixes = load_prefix_settings(db)
    assert _issue(db, officer, prefixes).doc_no == "QT2025-0001"

    rival = session_factory()
    rival_results = []

    def _now_with_interleaved_writer():
        # Runs after this session has read counter state, before it commits.
        if not rival_results:
            rival_results.append(_issue(rival, officer, prefixes))
        return FIXED_NOW

    try:
        issued = _issue(db, officer, prefixes, now=_now_with_interleaved_writer)
    finally:
        rival.close()

    assert rival_results[0].doc_no == "QT2025-0002"
    assert issued.doc_no == "QT2025-0003"

    db.expire_all()
    doc_nos = sorted(row[0] for row in db.query(Document.doc_no).all())
    assert doc_nos == ["QT2025-0001", "QT2025-0002", "QT2025-0003"]
    assert db.get(DocumentCounter, 2025).sequences["QUOTATION:QT"] == 3


def test_first_issue_baselines_from_backfilled_numbers(db, officer, document_settings) -> None:
    prefixes = load_prefix_settings(db)
    _issue(db, officer, prefixes, manual_doc_no="QT2025-0009")

    issued = _issue(db, officer, prefixes)

    assert issued.doc_no == "QT2025-0010"


def test_counter_skips_past_manually_taken_number(db, officer, document_settings) -> None:
    prefixes = load_prefix_settings(db)
    _issue(db, officer, prefixes)
    _issue(db, officer, prefixes, manual_doc_no="QT2025-0002")

    issued = _issue(db, officer, prefixes)

    assert issued.doc_no == "QT2025-0003"
    assert db.get(DocumentCounter, 2025).sequences["QUOTATION:QT"] == 3


def test_manual_number_is_rejected_when_taken(db, officer, document_settings) -> None:
    prefixes = load_prefix_settings(db)
    _issue(db, officer, prefixes, manual_doc_no="QT-OLD-17")

    with pytest.raises(DuplicateNumberError) as exc_info:
        _issue(db, officer, prefixes, manual_doc_no="QT-OLD-17")

    assert exc_info.value.code == "DOCUMENT_NUMBER_DUPLICATE"
    assert exc_info.value.http_status == 409
    assert db.query(Document).count() == 1
    assert db.get(DocumentCounter, 2025) is None


def test_same_manual_number_is_allowed_for_another_type(db, officer, document_settings) -> None:
    prefixes = load_prefix_settings(db)
    _issue(db, officer, prefixes, manual_doc_no="2025-001")

    issued = _issue(db, officer, prefixes, doc_type="RECEIPT", manual_doc_no="2025-001")

    assert issued.doc_no == "2025-001"


def test_missing_settings_raise_config_missing(db, officer) -> None:
    with pytest.raises(ConfigMissingError) as exc_info:
        load_prefix_settings(db)
    assert exc_info.value.http_status == 412

    with pytest.raises(ConfigMissingError):
        _issue(db, officer, None)

    manual = _issue(db, officer, None, manual_doc_no="QT-LEGACY-1")
    assert manual.doc_no == "QT-LEGACY-1"


def test_unknown_document_type_is_rejected(db, officer, document_settings) -> None:
    with pytest.raises(DomainError) as exc_info:
        _issue(db, officer, load_prefix_settings(db), doc_type="PURCHASE_ORDER")

    assert exc_info.value.code == "DOCUMENT_INVALID_REQUEST"
    assert db.query(Document).count() == 0


def test_missing_linked_job_is_a_warning(db, officer, document_settings) -> None:
    issued = _issue(db, officer, load_prefix_settings(db), job_id=uuid4(), new_job_status="WAITING_APPROVE")

    assert issued.doc_no == "QT2025-0001"
    assert len(issued.warnings) == 1
    assert "not found" in issued.warnings[0]
    assert db.get(Document, issued.document_id) is not None


def test_linked_job_gets_status_and_activity(db, officer, document_settings, job_factory) -> None:
    job = job_factory(status="WAITING_QUOTATION")

    issued = _issue(
        db,
        officer,
        load_prefix_settings(db),
        job_id=job.id,
        new_job_status="WAITING_APPROVE",
    )

    db.expire_all()
    refreshed = db.get(Job, job.id)
    assert refreshed.status == "WAITING_APPROVE"
    activities = db.query(JobActivity).filter(JobActivity.job_id == job.id).all()
    assert [activity.text for activity in activities] == [f"Created QUOTATION document: {issued.doc_no}"]
    assert activities[0].user_name == officer.display_name


def test_sales_document_links_the_job(db, officer, document_settings, job_factory) -> None:
    job = job_factory(status="DONE")

    issued = _issue(db, officer, load_prefix_settings(db), doc_type="TAX_INVOICE", job_id=job.id)

    db.expire_all()
    refreshed = db.get(Job, job.id)
    assert refreshed.status == "DONE"
    assert refreshed.sales_doc_id == issued.document_id
    assert refreshed.sales_doc_type == "TAX_INVOICE"
    assert refreshed.sales_doc_no == "INV2025-0001"


def test_backfilled_document_is_marked_in_job_activity(db, officer, document_settings, job_factory) -> None:
    job = job_factory(status="DONE")

    _issue(db, officer, load_prefix_settings(db), job_id=job.id, manual_doc_no="QT2024-0500")

    texts = [row[0] for row in db.query(JobActivity.text).filter(JobActivity.job_id == job.id).all()]
    assert texts == ["Created QUOTATION document: QT2024-0500 (backfilled)"]


def test_alternating_writers_use_each_sequence_exactly_once(
    db, session_factory, officer, document_settings
) -> None:
    prefixes = load_prefix_settings(db)
    other = session_factory()
    issued = []
    try:
        for _ in range(5):
            # Each session still holds the counter version it saw last time.
            issued.append(_issue(db, officer, prefixes).doc_no)
            issued.append(_issue(other, officer, prefixes).doc_no)
    finally:
        other.close()

    assert len(set(issued)) == len(issued)
    assert sorted(issued) == [f"QT2025-{sequence:04d}" for sequence in range(1, 11)]


def test_buddhist_era_doc_date_is_stored_in_gregorian(db, officer, document_settings) -> None:
    issued = _issue(db, officer, load_prefix_settings(db), doc_date=date(2568, 3, 1))

    db.expire_all()
    assert db.get(Document, issued.document_id).doc_date == date(2025, 3, 1)


def test_manual_number_longer_than_column_is_rejected(db, officer, document_settings) -> None:
    prefixes = load_prefix_settings(db)

    with pytest.raises(DomainError) as exc_info:
        _issue(db, officer, prefixes, manual_doc_no="X" * 61)

    assert exc_info.value.code == "DOCUMENT_NUMBER_INVALID"
    assert exc_info.value.http_status == 400
    assert db.query(Document).count() == 0

    assert _issue(db, officer, prefixes, manual_doc_no="X" * 60).doc_no == "X" * 60
