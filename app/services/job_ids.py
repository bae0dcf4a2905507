import random
import re
from datetime import date

from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.job_id_reservation import JobIdReservation
from app.models.timesheet_entry import TimesheetEntry

_SEQUENCE_RE = re.compile(r"^\d{1,4}$")


def build_job_id(abbreviation: str, entry_date: date, sequence, job_type: str) -> str:
    """{ABBR}-{YY}-{NNNN}-{TYPE}"""
    seq = str(sequence).strip()
    if not _SEQUENCE_RE.match(seq):
        raise ValidationError("Unique number must be 1-4 digits")
    abbr = (abbreviation or "").strip().upper()
    if not abbr:
        raise ValidationError("Company has no abbreviation")
    code = (job_type or "").strip().upper()
    if not code:
        raise ValidationError("Job type is required")

    yy = f"{entry_date.year % 100:02d}"
    return f"{abbr}-{yy}-{int(seq):04d}-{code}"


def generate_unique_id(entry_date: date) -> str:
    n = random.randint(0, 999999)
    return f"TS-{entry_date.strftime('%Y%m%d')}-{n:04d}"


def new_unique_id(db: Session, entry_date: date, attempts: int = 5) -> str:
    # Storage constraint is authoritative; this only avoids the obvious collision.
    candidate = generate_unique_id(entry_date)
    for _ in range(attempts):
        taken = db.query(TimesheetEntry.id).filter(TimesheetEntry.unique_id == candidate).first()
        if taken is None:
            return candidate
        candidate = generate_unique_id(entry_date)
    return candidate


def job_id_taken(db: Session, job_id: str) -> bool:
    row = db.query(JobIdReservation.id).filter(JobIdReservation.job_id == job_id).first()
    return row is not None


def reserve_job_id(db: Session, job_id: str, source: str) -> JobIdReservation:
    """Adds the reservation row; a concurrent duplicate surfaces as IntegrityError on flush."""
    row = JobIdReservation(job_id=job_id, source=source)
    db.add(row)
    db.flush()
    return row
