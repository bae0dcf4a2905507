import os
_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret

import tempfile
from itertools import count
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

_tmp_dir = tempfile.mkdtemp(prefix="timesheets-test-")
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_tmp_dir}/timesheets_test.db")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.pop("SMTP_HOST", None)
os.environ.pop("BULK_JOB_ID_UNIQUENESS", None)

from app import database  # noqa: E402
from app.models import Company, CrewChief, JobType, User  # noqa: E402
from app.services.auth_service import hash_password  # noqa: E402

DEFAULT_PASSWORD = "correct-horse-battery"

_seq = count(1)


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _clear_tables() -> None:
    with database.engine.begin() as conn:
        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    _ensure_database_exists(TEST_DATABASE_URL)

    cfg = Config(str(Path(__file__).resolve().parents[2] / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")

    database.configure_database()


@pytest.fixture(scope="function", autouse=True)
def _clear_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


def _add(row):
    db = database.SessionLocal()
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@pytest.fixture
def company_factory():
    def create(name=None, abbreviation=None, email=None, email_enabled=True) -> Company:
        n = next(_seq)
        return _add(
            Company(
                name=name or f"Company {n}",
                abbreviation=abbreviation or f"C{n}",
                email=email,
                email_enabled=email_enabled,
            )
        )

    return create


@pytest.fixture
def user_factory():
    def create(username=None, password=DEFAULT_PASSWORD, role="program_manager", company_id=None, full_name=None) -> User:
        n = next(_seq)
        return _add(
            User(
                username=username or f"user{n}",
                password_hash=hash_password(password),
                full_name=full_name or f"User {n}",
                email=f"user{n}@example.com",
                role=role,
                company_id=company_id,
            )
        )

    return create


@pytest.fixture
def crew_chief_factory():
    def create(company_id: int, name=None, employee_code=None) -> CrewChief:
        n = next(_seq)
        return _add(CrewChief(company_id=company_id, name=name or f"Crew Chief {n}", employee_code=employee_code))

    return create


@pytest.fixture
def job_type_factory():
    def create(code: str, name=None) -> JobType:
        return _add(JobType(code=code, name=name or code.title()))

    return create


def login(username: str, password: str = DEFAULT_PASSWORD) -> dict:
    """Bearer headers for the user. Uses a throwaway client so no session cookie leaks into others."""
    from app.main import app

    throwaway = TestClient(app)
    resp = throwaway.post("/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, f"login failed: {resp.status_code} {resp.text}"
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def login_as():
    def _login_as(user: User, password: str = DEFAULT_PASSWORD) -> dict:
        return login(user.username, password)

    return _login_as
