from fastapi.testclient import TestClient

from app import database
from app.main import app
from app.models import CrewChief, JobIdReservation, TimeInterval, TimesheetEntry

client = TestClient(app)


def _crew(name, time_in="08:00", time_out="16:00", **extra):
    return {"name": name, "time_in": time_in, "time_out": time_out, **extra}


def _submit(headers, company_id, jobs, entry_date="2025-05-01"):
    return client.post(
        "/timesheet/entries",
        json={"company_id": company_id, "entry_date": entry_date, "jobs": jobs},
        headers=headers,
    )


def _entries():
    db = database.SessionLocal()
    try:
        return db.query(TimesheetEntry).order_by(TimesheetEntry.id.asc()).all()
    finally:
        db.close()


def test_partial_success_keeps_valid_lines(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    r = _submit(
        headers,
        company.id,
        [
            {
                "job_id": "JOB-1",
                "job_type": "WTR",
                "crews": [
                    _crew("Ann"),
                    _crew("Ben", time_in="17:00", time_out="09:00"),
                    _crew("Cat", time_in="07:30", time_out="11:15"),
                ],
            },
            {"job_id": "JOB-2", "crews": [_crew("Dee", time_in=""), _crew("Eve")]},
        ],
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["created_count"] == 3
    assert [(c["job_index"], c["crew_index"]) for c in body["created"]] == [(0, 0), (0, 2), (1, 1)]
    assert [(e["job_index"], e["crew_index"], e["kind"]) for e in body["errors"]] == [
        (0, 1, "validation"),
        (1, 0, "validation"),
    ]

    rows = _entries()
    assert len(rows) == 3
    assert [r.job_id for r in rows] == ["JOB-1", "JOB-1", "JOB-2"]
    assert len({r.unique_id for r in rows}) == 3

    db = database.SessionLocal()
    try:
        for row in rows:
            assert db.query(TimeInterval).filter(TimeInterval.timesheet_entry_id == row.id).count() == 1
    finally:
        db.close()


def test_all_lines_failing_returns_400(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    r = _submit(headers, company.id, [{"job_id": "", "crews": [_crew("Ann")]}, {"job_id": "J", "crews": []}])
    assert r.status_code == 400, r.text
    body = r.json()
    assert body["created_count"] == 0
    assert [(e["job_index"], e["crew_index"]) for e in body["errors"]] == [(0, 0), (1, None)]
    assert _entries() == []


def test_unknown_job_type_fails_whole_block(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    r = _submit(
        headers,
        company.id,
        [
            {"job_id": "J-1", "job_type": "NOPE", "crews": [_crew("Ann"), _crew("Ben")]},
            {"job_id": "J-2", "job_type": "con", "crews": [_crew("Cat")]},
        ],
    )
    assert r.status_code == 201, r.text
    assert len(r.json()["errors"]) == 2
    rows = _entries()
    assert [(r.job_id, r.job_type) for r in rows] == [("J-2", "CON")]


def test_missing_crew_reference_reports_not_found(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    r = _submit(
        headers,
        company.id,
        [{"job_id": "J-1", "crews": [{"crew_chief_id": 9999, "time_in": "08:00", "time_out": "09:00"}, _crew("Ann")]}],
    )
    assert r.status_code == 201, r.text
    assert r.json()["errors"][0]["kind"] == "not_found"
    assert r.json()["created_count"] == 1


def test_job_id_reuse_across_submissions_rejected(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    first = _submit(headers, company.id, [{"job_id": "J-77", "crews": [_crew("Ann"), _crew("Ben")]}])
    assert first.status_code == 201, first.text
    assert first.json()["created_count"] == 2

    second = _submit(headers, company.id, [{"job_id": "J-77", "crews": [_crew("Cat")]}], entry_date="2025-05-02")
    assert second.status_code == 400, second.text
    assert second.json()["errors"][0]["kind"] == "conflict"
    assert len(_entries()) == 2


def test_job_id_reuse_allowed_when_uniqueness_disabled(monkeypatch, user_factory, login_as, company_factory):
    monkeypatch.setenv("BULK_JOB_ID_UNIQUENESS", "false")
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    assert _submit(headers, company.id, [{"job_id": "J-77", "crews": [_crew("Ann")]}]).status_code == 201
    again = _submit(headers, company.id, [{"job_id": "J-77", "crews": [_crew("Ben")]}])
    assert again.status_code == 201, again.text
    assert len(_entries()) == 2


def test_crew_names_are_found_or_created(user_factory, login_as, company_factory, crew_chief_factory):
    company = company_factory()
    existing = crew_chief_factory(company.id, name="Ann")
    headers = login_as(user_factory(company_id=company.id))

    r = _submit(
        headers,
        company.id,
        [
            {"job_id": "J-1", "crews": [_crew("Ann"), _crew("Newcomer", employee_code="E-9")]},
            {"job_id": "J-2", "crews": [_crew("Newcomer")]},
        ],
    )
    assert r.status_code == 201, r.text
    created = r.json()["created"]
    assert created[0]["crew_chief_id"] == existing.id
    assert created[1]["crew_chief_id"] == created[2]["crew_chief_id"]

    db = database.SessionLocal()
    try:
        assert db.query(CrewChief).filter(CrewChief.company_id == company.id).count() == 2
        assert db.query(CrewChief).filter(CrewChief.name == "Newcomer").one().employee_code == "E-9"
    finally:
        db.close()


def test_entries_owned_by_submitter(user_factory, login_as, company_factory):
    company = company_factory()
    pm = user_factory(company_id=company.id)

    r = _submit(login_as(pm), company.id, [{"job_id": "J-1", "crews": [_crew("Ann")]}])
    assert r.status_code == 201, r.text
    assert [row.user_id for row in _entries()] == [pm.id]


def test_job_id_repeated_across_blocks_is_a_conflict(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    r = _submit(
        headers,
        company.id,
        [
            {"job_id": "J-5", "crews": [_crew("Ann"), _crew("Ben")]},
            {"job_id": "J-5", "crews": [_crew("Cat")]},
        ],
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["created_count"] == 2
    assert [(e["job_index"], e["crew_index"], e["kind"]) for e in body["errors"]] == [(1, 0, "conflict")]
    assert len(_entries()) == 2


def test_job_id_repeated_across_blocks_allowed_when_uniqueness_disabled(
    monkeypatch, user_factory, login_as, company_factory
):
    monkeypatch.setenv("BULK_JOB_ID_UNIQUENESS", "off")
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))

    r = _submit(
        headers,
        company.id,
        [{"job_id": "J-5", "crews": [_crew("Ann")]}, {"job_id": "J-5", "crews": [_crew("Cat")]}],
    )
    assert r.status_code == 201, r.text
    assert r.json()["errors"] == []

    db = database.SessionLocal()
    try:
        assert db.query(JobIdReservation).filter(JobIdReservation.job_id == "J-5").count() == 1
    finally:
        db.close()
