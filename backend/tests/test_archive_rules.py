from __future__ import annotations

from datetime import date, datetime

import pytest

from app.services.archive_rules import (
    archive_collection_for,
    archive_collection_name,
    clamp_migration_limit,
    coerce_date,
    normalize_payment_status,
)


def test_archive_collection_follows_close_year() -> None:
    assert archive_collection_name(2026) == "jobsArchive_2026"
    assert archive_collection_for(date(2025, 12, 31)) == "jobsArchive_2025"
    assert archive_collection_for("2569-01-02") == "jobsArchive_2026"


def test_coerce_date_accepts_common_inputs() -> None:
    assert coerce_date(date(2026, 2, 1)) == date(2026, 2, 1)
    assert coerce_date(datetime(2026, 2, 1, 10, 30)) == date(2026, 2, 1)
    assert coerce_date("2026-02-01T10:30:00Z") == date(2026, 2, 1)
    with pytest.raises(ValueError):
        coerce_date("yesterday")


def test_payment_status_defaults_to_unpaid() -> None:
    assert normalize_payment_status(None) == "UNPAID"
    assert normalize_payment_status(" paid ") == "PAID"
    with pytest.raises(ValueError):
        normalize_payment_status("REFUNDED")


@pytest.mark.parametrize(
    ("requested", "expected"),
    [(None, 40), (0, 40), (-3, 40), (10, 10), (40, 40), (100, 40)],
)
def test_migration_limit_is_clamped(requested, expected) -> None:
    assert clamp_migration_limit(requested, maximum=40) == expected
