import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.company import Company
from app.models.crew_chief import CrewChief
from app.models.job_type import JobType
from app.models.timesheet_entry import TimesheetEntry
from app.models.user import User

logger = logging.getLogger(__name__)

# Served when the job type registry is empty or cannot be read.
BUILTIN_JOB_TYPES = [
    ("CON", "Content"),
    ("WTR", "Water"),
    ("MLD", "Mold"),
    ("STC", "Structured Cleaning"),
    ("TRM", "Trauma"),
    ("TMP", "Temporary Services"),
]

_ABBREVIATION_RE = re.compile(r"^[A-Z0-9]{1,5}$")
_JOB_TYPE_CODE_RE = re.compile(r"^[A-Z0-9]{2,10}$")


def _required(value: Optional[str], label: str) -> str:
    v = (value or "").strip()
    if not v:
        raise ValidationError(f"{label} is required")
    return v


# ---------- Companies ----------

def list_companies(db: Session) -> list[Company]:
    return db.query(Company).order_by(Company.name.asc()).all()


def get_company(db: Session, company_id: int) -> Company:
    row = db.get(Company, int(company_id))
    if row is None:
        raise NotFoundError("Company not found")
    return row


def create_company(
    db: Session,
    *,
    name: str,
    abbreviation: str,
    email: Optional[str] = None,
    email_enabled: bool = True,
) -> Company:
    name = _required(name, "Name")
    abbreviation = _required(abbreviation, "Abbreviation").upper()
    if not _ABBREVIATION_RE.match(abbreviation):
        raise ValidationError("Abbreviation must be 1-5 letters or digits")

    if db.query(Company.id).filter(Company.name == name).first() is not None:
        raise ConflictError("Company name already exists")
    if db.query(Company.id).filter(Company.abbreviation == abbreviation).first() is not None:
        raise ConflictError("Company abbreviation already exists")

    row = Company(
        name=name,
        abbreviation=abbreviation,
        email=(email or "").strip() or None,
        email_enabled=bool(email_enabled),
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError("Company name or abbreviation already exists") from exc
    return row


def delete_company(db: Session, company_id: int) -> None:
    row = get_company(db, company_id)

    in_use = db.query(TimesheetEntry.id).filter(TimesheetEntry.company_id == row.id).first()
    if in_use is not None:
        raise ConflictError("Company has timesheet entries")

    db.query(User).filter(User.company_id == row.id).update(
        {User.company_id: None}, synchronize_session=False
    )
    db.query(CrewChief).filter(CrewChief.company_id == row.id).delete(synchronize_session=False)
    db.delete(row)
    db.flush()


# ---------- Job types ----------

def builtin_job_types() -> list[dict]:
    return [{"id": None, "code": code, "name": name, "description": None} for code, name in BUILTIN_JOB_TYPES]


def list_job_types(db: Session) -> list:
    try:
        rows = db.query(JobType).order_by(JobType.code.asc()).all()
    except SQLAlchemyError:
        logger.exception("Job type registry unavailable; serving built-in list")
        db.rollback()
        return builtin_job_types()

    if not rows:
        return builtin_job_types()
    return rows


def available_job_type_codes(db: Session) -> set[str]:
    return {r["code"] if isinstance(r, dict) else r.code for r in list_job_types(db)}


def create_job_type(db: Session, *, code: str, name: str, description: Optional[str] = None) -> JobType:
    code = _required(code, "Code").upper()
    if not _JOB_TYPE_CODE_RE.match(code):
        raise ValidationError("Code must be 2-10 letters or digits")
    name = _required(name, "Name")

    if db.query(JobType.id).filter(JobType.code == code).first() is not None:
        raise ConflictError("Job type code already exists")

    row = JobType(code=code, name=name, description=(description or "").strip() or None)
    db.add(row)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError("Job type code already exists") from exc
    return row


def delete_job_type(db: Session, job_type_id: int) -> None:
    row = db.get(JobType, int(job_type_id))
    if row is None:
        raise NotFoundError("Job type not found")
    db.delete(row)
    db.flush()


# ---------- Crew chiefs ----------

def list_crew_chiefs(db: Session, company_id: Optional[int] = None) -> list[CrewChief]:
    q = db.query(CrewChief)
    if company_id is not None:
        q = q.filter(CrewChief.company_id == int(company_id))
    return q.order_by(CrewChief.name.asc(), CrewChief.id.asc()).all()


def get_crew_chief(db: Session, crew_chief_id: int) -> CrewChief:
    row = db.get(CrewChief, int(crew_chief_id))
    if row is None:
        raise NotFoundError("Crew chief not found")
    return row


def _find_crew_chief(db: Session, company_id: int, name: str) -> Optional[CrewChief]:
    return (
        db.query(CrewChief)
        .filter(CrewChief.company_id == int(company_id), CrewChief.name == name)
        .first()
    )


def find_or_create_crew_chief(
    db: Session,
    company_id: int,
    name: str,
    employee_code: Optional[str] = None,
) -> tuple[CrewChief, bool]:
    """
    Returns (crew_chief, existed). The (company_id, name) unique constraint
    decides races: losing the insert means the row already existed.

    Inserts inside a savepoint and leaves the commit to the caller, so the
    row is only kept if the surrounding transaction is.
    """
    name = _required(name, "Crew chief name")
    get_company(db, company_id)

    row = _find_crew_chief(db, company_id, name)
    if row is not None:
        return row, True

    row = CrewChief(
        company_id=int(company_id),
        name=name,
        employee_code=(employee_code or "").strip() or None,
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError:
        existing = _find_crew_chief(db, company_id, name)
        if existing is None:
            raise
        return existing, True

    logger.info("Crew chief created", extra={"crew_chief_id": row.id, "company_id": company_id})
    return row, False


def delete_crew_chief(db: Session, crew_chief_id: int) -> None:
    row = get_crew_chief(db, crew_chief_id)
    in_use = db.query(TimesheetEntry.id).filter(TimesheetEntry.crew_chief_id == row.id).first()
    if in_use is not None:
        raise ConflictError("Crew chief has timesheet entries")
    db.delete(row)
    db.flush()
