from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models import DocumentSettings, Job, JobActivity, User


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'job_archive.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_busy_timeout(dbapi_connection, _record):
        dbapi_connection.execute("PRAGMA busy_timeout = 2000")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def officer(db):
    user = User(
        id=uuid4(),
        username="officer",
        display_name="Office Officer",
        role="OFFICER",
        department="OFFICE",
        is_active=True,
        token_version=0,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def document_settings(db):
    record = DocumentSettings(
        id="documents",
        quotation_prefix="QT",
        delivery_note_prefix="DN",
        tax_invoice_prefix="INV",
        receipt_prefix="RC",
        billing_note_prefix="BN",
        credit_note_prefix="CN",
        withholding_tax_prefix=None,
    )
    db.add(record)
    db.commit()
    return record


def make_job(db, *, status="RECEIVED", closed_date: date | None = None, activities: int = 0, **fields) -> Job:
    job = Job(
        id=uuid4(),
        department=fields.pop("department", "CAR_SERVICE"),
        status=status,
        customer_snapshot=fields.pop("customer_snapshot", {"name": "Somchai"}),
        description=fields.pop("description", "Brake service"),
        photos=[],
        closed_date=closed_date,
        **fields,
    )
    db.add(job)
    base = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
    for index in range(activities):
        db.add(
            JobActivity(
                id=uuid4(),
                job_id=job.id,
                text=f"Step {index + 1}",
                user_name="Mechanic",
                photos=[],
                created_at=base.replace(minute=index % 60, second=index // 60),
            )
        )
    db.commit()
    return job


@pytest.fixture()
def job_factory(db):
    def _factory(**kwargs) -> Job:
        return make_job(db, **kwargs)

    return _factory
