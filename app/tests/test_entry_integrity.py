from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from app import database
from app.core.errors import ConflictError
from app.main import app
from app.models import CrewChief, JobIdReservation, TimesheetEntry
from app.schemas.timesheet import IntervalIn, SequencedEntryCreate
from app.services import job_ids, reference_data, timesheet_service
from app.services.auth_service import principal_from_user

client = TestClient(app)


def _count(model) -> int:
    db = database.SessionLocal()
    try:
        return db.query(model).count()
    finally:
        db.close()


def _sequenced(company_id, unique_number="7", crew_chief_name="Zed"):
    return SequencedEntryCreate(
        company_id=company_id,
        entry_date=date(2025, 3, 3),
        job_type="WTR",
        unique_number=unique_number,
        crew_chief_name=crew_chief_name,
        time_entries=[IntervalIn(time_in="08:00", time_out="09:00")],
    )


def test_reservation_taken_after_precheck_is_conflict_and_writes_nothing(
    monkeypatch, company_factory, user_factory
):
    company = company_factory(abbreviation="ACM")
    pm = user_factory(company_id=company.id)

    db = database.SessionLocal()
    try:
        db.add(JobIdReservation(job_id="ACM-25-0007-WTR", source="sequenced"))
        db.commit()

        # another submission commits the reservation between the pre-check and the insert
        monkeypatch.setattr(timesheet_service, "_job_id_in_use", lambda *_a: False)
        with pytest.raises(ConflictError) as exc_info:
            timesheet_service.create_sequenced_entry(db, principal_from_user(pm), _sequenced(company.id))
    finally:
        db.close()

    assert "ACM-25-0007-WTR" in exc_info.value.message
    assert _count(TimesheetEntry) == 0
    assert _count(CrewChief) == 0
    assert _count(JobIdReservation) == 1


def test_crew_chief_inserted_concurrently_is_refetched(monkeypatch, company_factory, crew_chief_factory):
    company = company_factory()
    existing = crew_chief_factory(company.id, name="Ann")

    real_find = reference_data._find_crew_chief
    calls = []

    def miss_first_lookup(db, company_id, name):
        calls.append(name)
        if len(calls) == 1:
            return None
        return real_find(db, company_id, name)

    monkeypatch.setattr(reference_data, "_find_crew_chief", miss_first_lookup)

    db = database.SessionLocal()
    try:
        row, existed = reference_data.find_or_create_crew_chief(db, company.id, "Ann")
        db.commit()
    finally:
        db.close()

    assert existed is True
    assert row.id == existing.id
    assert calls == ["Ann", "Ann"]
    assert _count(CrewChief) == 1


def test_other_integrity_errors_are_not_job_id_conflicts(monkeypatch, company_factory, user_factory):
    company = company_factory(abbreviation="ACM")
    pm = user_factory(company_id=company.id)
    monkeypatch.setattr(job_ids, "new_unique_id", lambda *_a, **_kw: "TS-20250303-0001")

    db = database.SessionLocal()
    try:
        timesheet_service.create_sequenced_entry(
            db, principal_from_user(pm), _sequenced(company.id, unique_number="1", crew_chief_name="Ann")
        )
        with pytest.raises(IntegrityError):
            timesheet_service.create_sequenced_entry(db, principal_from_user(pm), _sequenced(company.id, "2"))
    finally:
        db.close()

    assert _count(TimesheetEntry) == 1
    assert _count(JobIdReservation) == 1
    # the crew chief created for the failed request was rolled back with it
    assert _count(CrewChief) == 1


def test_storage_failure_on_sequenced_route_is_opaque_500(monkeypatch, company_factory, user_factory, login_as):
    company = company_factory(abbreviation="ACM")
    headers = login_as(user_factory(company_id=company.id))
    monkeypatch.setattr(job_ids, "new_unique_id", lambda *_a, **_kw: "TS-20250303-0001")

    body = {
        "company_id": company.id,
        "entry_date": "2025-03-03",
        "job_type": "WTR",
        "unique_number": "1",
        "crew_chief_name": "Ann",
        "time_entries": [{"time_in": "08:00", "time_out": "09:00"}],
    }
    assert client.post("/timesheet/entries/sequenced", json=body, headers=headers).status_code == 201

    r = client.post(
        "/timesheet/entries/sequenced",
        json={**body, "unique_number": "2", "crew_chief_name": "Zed"},
        headers=headers,
    )
    assert r.status_code == 500, r.text
    assert r.json() == {"detail": "Internal Server Error"}
    assert _count(CrewChief) == 1


def test_bulk_storage_failure_is_reported_per_unit(monkeypatch, company_factory, user_factory, login_as):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))
    monkeypatch.setattr(job_ids, "new_unique_id", lambda *_a, **_kw: "TS-20250501-0001")

    r = client.post(
        "/timesheet/entries",
        json={
            "company_id": company.id,
            "entry_date": "2025-05-01",
            "jobs": [
                {
                    "job_id": "J-1",
                    "crews": [
                        {"name": "Ann", "time_in": "08:00", "time_out": "09:00"},
                        {"name": "Ben", "time_in": "08:00", "time_out": "09:00"},
                    ],
                }
            ],
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["created_count"] == 1
    assert [(e["crew_index"], e["kind"], e["error"]) for e in body["errors"]] == [
        (1, "storage", "Failed to create timesheet entry"),
    ]

    db = database.SessionLocal()
    try:
        assert [c.name for c in db.query(CrewChief).all()] == ["Ann"]
    finally:
        db.close()
