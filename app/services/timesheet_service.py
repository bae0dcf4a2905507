from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.authorization import ensure_owner, sees_all_entries
from app.core.errors import ConflictError, NotFoundError, TimesheetError, ValidationError
from app.core.principal import Principal
from app.models.crew_chief import CrewChief
from app.models.timesheet_entry import TimeInterval, TimesheetEntry
from app.schemas.timesheet import BulkEntryCreate, EntryUpdate, IntervalIn, SequencedEntryCreate
from app.services import job_ids, reference_data

logger = logging.getLogger(__name__)

_CLOCK_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")

OnCreated = Optional[Callable[[TimesheetEntry], None]]


def bulk_job_id_uniqueness_enabled() -> bool:
    v = os.getenv("BULK_JOB_ID_UNIQUENESS")
    if v is None:
        return True
    return v.strip().lower() not in {"0", "false", "no", "off"}


@dataclass
class UnitResult:
    job_index: int
    crew_index: Optional[int]
    job_id: Optional[str]
    entry: Optional[TimesheetEntry] = None
    kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.entry is not None


@dataclass
class BulkResult:
    units: list[UnitResult] = field(default_factory=list)

    @property
    def created(self) -> list[UnitResult]:
        return [u for u in self.units if u.ok]

    @property
    def errors(self) -> list[UnitResult]:
        return [u for u in self.units if not u.ok]


# ---------- Parsing ----------

def parse_clock(value: Optional[str], label: str) -> time:
    v = (value or "").strip()
    if not v:
        raise ValidationError(f"{label} is required")
    if not _CLOCK_RE.match(v):
        raise ValidationError(f"{label} must be HH:MM")
    try:
        if len(v.split(":")[0]) == 1:
            v = "0" + v
        # minute precision; seconds are dropped before any comparison
        return time.fromisoformat(v).replace(second=0)
    except ValueError as exc:
        raise ValidationError(f"{label} must be HH:MM") from exc


def parse_interval(time_in: Optional[str], time_out: Optional[str]) -> tuple[time, time]:
    t_in = parse_clock(time_in, "Time in")
    t_out = parse_clock(time_out, "Time out")
    if t_out <= t_in:
        raise ValidationError("Time out must be after time in")
    return t_in, t_out


def parse_intervals(items: list[IntervalIn]) -> list[tuple[time, time]]:
    if not items:
        raise ValidationError("At least one time entry is required")
    return [parse_interval(i.time_in, i.time_out) for i in items]


def _normalise_job_type(db: Session, job_type: Optional[str], *, required: bool) -> Optional[str]:
    code = (job_type or "").strip().upper()
    if not code:
        if required:
            raise ValidationError("Job type is required")
        return None
    if code not in reference_data.available_job_type_codes(db):
        raise ValidationError(f"Unknown job type: {code}")
    return code


def _crew_chief_for_company(db: Session, crew_chief_id: int, company_id: int) -> CrewChief:
    crew = reference_data.get_crew_chief(db, crew_chief_id)
    if int(crew.company_id) != int(company_id):
        raise ValidationError("Crew chief does not belong to company")
    return crew


def _job_id_in_use(db: Session, job_id: str) -> bool:
    if job_ids.job_id_taken(db, job_id):
        return True
    legacy = db.query(TimesheetEntry.id).filter(TimesheetEntry.job_id == job_id).first()
    return legacy is not None


def _reserve_or_conflict(db: Session, job_id: str, *, source: str, principal: Principal) -> None:
    """Only a duplicate reservation is a conflict; the savepoint keeps the rest of the transaction."""
    try:
        with db.begin_nested():
            job_ids.reserve_job_id(db, job_id, source=source)
    except IntegrityError as exc:
        # lost the race to a concurrent submission of the same Job ID
        logger.info("Job ID conflict on insert", extra={"job_id": job_id, "user_id": principal.id})
        raise ConflictError(f"Job ID {job_id} already exists") from exc


def _new_entry(
    db: Session,
    *,
    principal: Principal,
    company_id: int,
    crew_chief_id: int,
    job_id: str,
    job_type: Optional[str],
    entry_date: date,
    intervals: list[tuple[time, time]],
) -> TimesheetEntry:
    entry = TimesheetEntry(
        unique_id=job_ids.new_unique_id(db, entry_date),
        job_id=job_id,
        job_type=job_type,
        company_id=int(company_id),
        crew_chief_id=int(crew_chief_id),
        user_id=int(principal.id),
        entry_date=entry_date,
    )
    entry.intervals = [TimeInterval(time_in=t_in, time_out=t_out) for t_in, t_out in intervals]
    db.add(entry)
    db.flush()
    return entry


# ---------- Create ----------

def create_sequenced_entry(
    db: Session,
    principal: Principal,
    payload: SequencedEntryCreate,
    *,
    on_created: OnCreated = None,
) -> TimesheetEntry:
    """
    Job ID built from company abbreviation, entry year, submitted sequence and
    job type. A Job ID that was ever issued before is a conflict, and nothing
    is written for the request.
    """
    company = reference_data.get_company(db, payload.company_id)
    job_type = _normalise_job_type(db, payload.job_type, required=True)
    intervals = parse_intervals(payload.time_entries)

    if payload.crew_chief_id is None and not (payload.crew_chief_name or "").strip():
        raise ValidationError("Crew chief is required")

    job_id = job_ids.build_job_id(company.abbreviation, payload.entry_date, payload.unique_number, job_type)

    if _job_id_in_use(db, job_id):
        logger.info("Job ID conflict", extra={"job_id": job_id, "user_id": principal.id})
        raise ConflictError(f"Job ID {job_id} already exists")

    # Crew chief, reservation and entry commit together or not at all.
    try:
        if payload.crew_chief_id is not None:
            crew = _crew_chief_for_company(db, payload.crew_chief_id, company.id)
        else:
            crew, _existed = reference_data.find_or_create_crew_chief(db, company.id, payload.crew_chief_name)

        _reserve_or_conflict(db, job_id, source="sequenced", principal=principal)
        entry = _new_entry(
            db,
            principal=principal,
            company_id=company.id,
            crew_chief_id=crew.id,
            job_id=job_id,
            job_type=job_type,
            entry_date=payload.entry_date,
            intervals=intervals,
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.exception("Timesheet entry insert failed", extra={"job_id": job_id, "user_id": principal.id})
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    logger.info(
        "Timesheet entry created",
        extra={"entry_id": entry.id, "job_id": job_id, "user_id": principal.id},
    )
    if on_created is not None:
        on_created(entry)
    return entry


def _create_bulk_unit(
    db: Session,
    principal: Principal,
    *,
    company_id: int,
    entry_date: date,
    job_id: str,
    job_type: Optional[str],
    reserve: bool,
    line,
) -> TimesheetEntry:
    intervals = [parse_interval(line.time_in, line.time_out)]

    if line.crew_chief_id is not None:
        crew = _crew_chief_for_company(db, line.crew_chief_id, company_id)
    elif (line.name or "").strip():
        crew, _existed = reference_data.find_or_create_crew_chief(
            db, company_id, line.name, employee_code=line.employee_code
        )
    else:
        raise ValidationError("Crew chief or name is required")

    if reserve:
        _reserve_or_conflict(db, job_id, source="bulk", principal=principal)

    entry = _new_entry(
        db,
        principal=principal,
        company_id=company_id,
        crew_chief_id=crew.id,
        job_id=job_id,
        job_type=job_type,
        entry_date=entry_date,
        intervals=intervals,
    )
    db.commit()
    db.refresh(entry)
    return entry


def create_bulk_entries(
    db: Session,
    principal: Principal,
    payload: BulkEntryCreate,
    *,
    on_created: OnCreated = None,
) -> BulkResult:
    """
    One company and date, many job blocks, many crew lines per block.

    Every crew line is an independent unit committed on its own: a failing
    line is rolled back alone and reported, lines that succeeded stay
    committed. Units are processed in submission order so errors map back to
    (job_index, crew_index).
    """
    company = reference_data.get_company(db, payload.company_id)
    if not payload.jobs:
        raise ValidationError("At least one job is required")

    enforce_unique = bulk_job_id_uniqueness_enabled()
    # Job IDs taken by earlier blocks of this submission
    seen: set[str] = set()
    result = BulkResult()

    for j, block in enumerate(payload.jobs):
        job_id = (block.job_id or "").strip()

        def _fail_block(kind: str, message: str) -> None:
            crews = block.crews or [None]
            for c in range(len(crews)):
                result.units.append(
                    UnitResult(
                        job_index=j,
                        crew_index=c if block.crews else None,
                        job_id=job_id or None,
                        kind=kind,
                        error=message,
                    )
                )

        if not job_id:
            _fail_block("validation", "Job ID is required")
            continue
        if not block.crews:
            _fail_block("validation", "At least one crew is required")
            continue

        try:
            job_type = _normalise_job_type(db, block.job_type, required=False)
        except ValidationError as exc:
            _fail_block("validation", exc.message)
            continue

        if enforce_unique and job_id in seen:
            logger.info("Bulk job ID repeated", extra={"job_id": job_id, "job_index": j})
            _fail_block("conflict", f"Job ID {job_id} appears in more than one job")
            continue
        seen.add(job_id)

        reserved = _job_id_in_use(db, job_id)
        if enforce_unique and reserved:
            logger.info("Bulk job ID conflict", extra={"job_id": job_id, "job_index": j})
            _fail_block("conflict", f"Job ID {job_id} already exists")
            continue

        for c, line in enumerate(block.crews):
            unit = UnitResult(job_index=j, crew_index=c, job_id=job_id)
            try:
                unit.entry = _create_bulk_unit(
                    db,
                    principal,
                    company_id=company.id,
                    entry_date=payload.entry_date,
                    job_id=job_id,
                    job_type=job_type,
                    reserve=not reserved,
                    line=line,
                )
                reserved = True
            except TimesheetError as exc:
                db.rollback()
                unit.kind = exc.kind
                unit.error = exc.message
            except SQLAlchemyError:
                db.rollback()
                logger.exception(
                    "Bulk unit storage failure",
                    extra={"job_index": j, "crew_index": c, "job_id": job_id},
                )
                unit.kind = "storage"
                unit.error = "Failed to create timesheet entry"

            if unit.ok:
                if on_created is not None:
                    on_created(unit.entry)
            else:
                logger.info(
                    "Bulk unit failed",
                    extra={"job_index": j, "crew_index": c, "job_id": job_id, "kind": unit.kind, "error": unit.error},
                )
            result.units.append(unit)

    logger.info(
        "Bulk submission processed",
        extra={
            "user_id": principal.id,
            "company_id": company.id,
            "created_count": len(result.created),
            "failed_count": len(result.errors),
        },
    )
    return result


# ---------- Read ----------

def _visible_query(db: Session, principal: Principal):
    q = db.query(TimesheetEntry).options(
        joinedload(TimesheetEntry.company),
        joinedload(TimesheetEntry.crew_chief),
        selectinload(TimesheetEntry.intervals),
    )
    if not sees_all_entries(principal):
        q = q.filter(TimesheetEntry.user_id == int(principal.id))
    return q


def list_visible_entries(
    db: Session,
    principal: Principal,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    *,
    oldest_first: bool = False,
) -> list[TimesheetEntry]:
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValidationError("start_date must not be after end_date")

    q = _visible_query(db, principal)
    if start_date is not None:
        q = q.filter(TimesheetEntry.entry_date >= start_date)
    if end_date is not None:
        q = q.filter(TimesheetEntry.entry_date <= end_date)

    if oldest_first:
        q = q.order_by(TimesheetEntry.entry_date.asc(), TimesheetEntry.id.asc())
    else:
        q = q.order_by(TimesheetEntry.entry_date.desc(), TimesheetEntry.created_at.desc(), TimesheetEntry.id.desc())
    return q.all()


def get_visible_entry(db: Session, principal: Principal, entry_id: int) -> TimesheetEntry:
    entry = _visible_query(db, principal).filter(TimesheetEntry.id == int(entry_id)).first()
    if entry is None:
        raise NotFoundError("Entry not found")
    return entry


def list_entry_intervals(db: Session, entry_id: int) -> list[TimeInterval]:
    return (
        db.query(TimeInterval)
        .filter(TimeInterval.timesheet_entry_id == int(entry_id))
        .order_by(TimeInterval.time_in.asc())
        .all()
    )


def _get_entry(db: Session, entry_id: int) -> TimesheetEntry:
    entry = db.get(TimesheetEntry, int(entry_id))
    if entry is None:
        raise NotFoundError("Entry not found")
    return entry


# ---------- Update / delete ----------

def update_entry(db: Session, principal: Principal, entry_id: int, payload: EntryUpdate) -> TimesheetEntry:
    """Replaces scalar fields and every interval (delete all, then insert)."""
    entry = _get_entry(db, entry_id)
    ensure_owner(principal, entry)

    reference_data.get_company(db, payload.company_id)
    crew = _crew_chief_for_company(db, payload.crew_chief_id, payload.company_id)
    job_type = _normalise_job_type(db, payload.job_type, required=False)
    intervals = parse_intervals(payload.time_entries)

    try:
        entry.company_id = int(payload.company_id)
        entry.crew_chief_id = int(crew.id)
        entry.job_type = job_type
        entry.entry_date = payload.entry_date
        entry.updated_at = datetime.utcnow()

        entry.intervals.clear()
        db.flush()
        entry.intervals.extend(TimeInterval(time_in=t_in, time_out=t_out) for t_in, t_out in intervals)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    logger.info("Timesheet entry updated", extra={"entry_id": entry.id, "user_id": principal.id})
    return entry


def delete_entry(db: Session, principal: Principal, entry_id: int) -> None:
    entry = _get_entry(db, entry_id)
    ensure_owner(principal, entry)

    try:
        db.delete(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Timesheet entry deleted", extra={"entry_id": int(entry_id), "user_id": principal.id})
