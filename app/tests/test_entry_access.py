from fastapi.testclient import TestClient

from app import database
from app.main import app
from app.models import TimeInterval, TimesheetEntry
from app.services.timesheet_service import list_entry_intervals

client = TestClient(app)


def _create(headers, company_id, job_id, crew="Ann", entry_date="2025-05-01", time_in="08:00", time_out="12:00"):
    r = client.post(
        "/timesheet/entries",
        json={
            "company_id": company_id,
            "entry_date": entry_date,
            "jobs": [{"job_id": job_id, "crews": [{"name": crew, "time_in": time_in, "time_out": time_out}]}],
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["created"][0]["id"]


def _setup(user_factory, login_as, company_factory):
    company = company_factory()
    pm_a = user_factory(company_id=company.id)
    pm_b = user_factory(company_id=company.id)
    h_a = login_as(pm_a)
    h_b = login_as(pm_b)
    a_entry = _create(h_a, company.id, "J-A")
    b_entry = _create(h_b, company.id, "J-B", entry_date="2025-05-03")
    return company, h_a, h_b, a_entry, b_entry


def test_program_managers_see_only_their_entries(user_factory, login_as, company_factory):
    _company, h_a, h_b, a_entry, b_entry = _setup(user_factory, login_as, company_factory)

    assert [e["id"] for e in client.get("/timesheet/entries", headers=h_a).json()] == [a_entry]
    assert [e["id"] for e in client.get("/timesheet/entries", headers=h_b).json()] == [b_entry]

    assert client.get(f"/timesheet/entries/{b_entry}", headers=h_a).status_code == 404


def test_admin_and_accountant_see_everything(user_factory, login_as, company_factory):
    _company, _h_a, _h_b, a_entry, b_entry = _setup(user_factory, login_as, company_factory)

    for role in ("admin", "accountant"):
        headers = login_as(user_factory(role=role))
        ids = [e["id"] for e in client.get("/timesheet/entries", headers=headers).json()]
        # newest entry date first
        assert ids == [b_entry, a_entry], role
        assert client.get(f"/timesheet/entries/{a_entry}", headers=headers).status_code == 200


def test_date_range_filter(user_factory, login_as, company_factory):
    _company, _h_a, _h_b, a_entry, b_entry = _setup(user_factory, login_as, company_factory)
    headers = login_as(user_factory(role="admin"))

    r = client.get("/timesheet/entries", params={"start_date": "2025-05-02"}, headers=headers)
    assert [e["id"] for e in r.json()] == [b_entry]
    r = client.get("/timesheet/entries", params={"end_date": "2025-05-01"}, headers=headers)
    assert [e["id"] for e in r.json()] == [a_entry]
    r = client.get("/timesheet/entries", params={"start_date": "2025-05-09", "end_date": "2025-05-01"}, headers=headers)
    assert r.status_code == 400


def test_non_owner_cannot_update_or_delete(user_factory, login_as, company_factory):
    company, h_a, h_b, a_entry, _b_entry = _setup(user_factory, login_as, company_factory)
    before = client.get(f"/timesheet/entries/{a_entry}", headers=h_a).json()

    r = client.put(
        f"/timesheet/entries/{a_entry}",
        json={
            "company_id": company.id,
            "crew_chief_id": before["crew_chief_id"],
            "entry_date": "2025-06-01",
            "time_entries": [{"time_in": "01:00", "time_out": "02:00"}],
        },
        headers=h_b,
    )
    assert r.status_code == 403, r.text
    assert client.delete(f"/timesheet/entries/{a_entry}", headers=h_b).status_code == 403

    after = client.get(f"/timesheet/entries/{a_entry}", headers=h_a).json()
    assert after == before


def test_accountant_is_read_only(user_factory, login_as, company_factory):
    _company, _h_a, _h_b, a_entry, _b_entry = _setup(user_factory, login_as, company_factory)
    headers = login_as(user_factory(role="accountant"))

    assert client.delete(f"/timesheet/entries/{a_entry}", headers=headers).status_code == 403


def test_update_replaces_all_intervals(user_factory, login_as, company_factory, crew_chief_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))
    entry_id = _create(headers, company.id, "J-1", time_in="07:00", time_out="08:00")
    new_crew = crew_chief_factory(company.id, name="Replacement")

    db = database.SessionLocal()
    try:
        original_ids = {iv.id for iv in list_entry_intervals(db, entry_id)}
    finally:
        db.close()
    assert len(original_ids) == 1

    r = client.put(
        f"/timesheet/entries/{entry_id}",
        json={
            "company_id": company.id,
            "crew_chief_id": new_crew.id,
            "entry_date": "2025-05-02",
            "job_type": "mld",
            "time_entries": [
                {"time_in": "13:00", "time_out": "17:30"},
                {"time_in": "08:00", "time_out": "12:00"},
            ],
        },
        headers=headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["job_id"] == "J-1"
    assert body["job_type"] == "MLD"
    assert body["entry_date"] == "2025-05-02"
    assert body["crew_chief_name"] == "Replacement"
    assert body["total_hours"] == "8h 30m"
    assert [(iv["time_in"], iv["time_out"]) for iv in body["time_entries"]] == [
        ("08:00:00", "12:00:00"),
        ("13:00:00", "17:30:00"),
    ]

    db = database.SessionLocal()
    try:
        new_ids = {iv.id for iv in list_entry_intervals(db, entry_id)}
    finally:
        db.close()
    assert len(new_ids) == 2
    assert new_ids.isdisjoint(original_ids)


def test_invalid_update_leaves_entry_untouched(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))
    entry_id = _create(headers, company.id, "J-1")
    before = client.get(f"/timesheet/entries/{entry_id}", headers=headers).json()

    r = client.put(
        f"/timesheet/entries/{entry_id}",
        json={
            "company_id": company.id,
            "crew_chief_id": before["crew_chief_id"],
            "entry_date": "2025-05-02",
            "time_entries": [{"time_in": "10:00", "time_out": "09:00"}],
        },
        headers=headers,
    )
    assert r.status_code == 400
    assert client.get(f"/timesheet/entries/{entry_id}", headers=headers).json() == before


def test_delete_cascades_to_intervals(user_factory, login_as, company_factory):
    company = company_factory()
    headers = login_as(user_factory(company_id=company.id))
    entry_id = _create(headers, company.id, "J-1")

    r = client.delete(f"/timesheet/entries/{entry_id}", headers=headers)
    assert r.status_code == 200, r.text
    assert client.get(f"/timesheet/entries/{entry_id}", headers=headers).status_code == 404
    assert client.delete(f"/timesheet/entries/{entry_id}", headers=headers).status_code == 404

    db = database.SessionLocal()
    try:
        assert list_entry_intervals(db, entry_id) == []
        assert db.query(TimesheetEntry).count() == 0
        assert db.query(TimeInterval).count() == 0
    finally:
        db.close()


def test_admin_may_modify_any_entry(user_factory, login_as, company_factory):
    _company, _h_a, _h_b, a_entry, _b_entry = _setup(user_factory, login_as, company_factory)
    admin = login_as(user_factory(role="admin"))

    assert client.delete(f"/timesheet/entries/{a_entry}", headers=admin).status_code == 200
