from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session

from app.core.authorization import Role, require_role
from app.core.principal import Principal
from app.database import get_db
from app.deps.auth import require_auth
from app.models.timesheet_entry import TimesheetEntry
from app.schemas.timesheet import (
    BulkCreateResponse,
    BulkEntryCreate,
    CreatedEntry,
    EntryResponse,
    EntryUpdate,
    IntervalResponse,
    SequencedCreateResponse,
    SequencedEntryCreate,
    UnitError,
)
from app.services import timesheet_service
from app.services.durations import format_total_hours
from app.services.notifications import build_entry_notification, dispatch_entry_notification

router = APIRouter(
    prefix="/timesheet/entries",
    tags=["Timesheet Entries"],
)


def _to_response(entry: TimesheetEntry) -> EntryResponse:
    crew = entry.crew_chief
    return EntryResponse(
        id=entry.id,
        unique_id=entry.unique_id,
        job_id=entry.job_id,
        job_type=entry.job_type,
        company_id=entry.company_id,
        company_name=entry.company.name if entry.company is not None else None,
        crew_chief_id=entry.crew_chief_id,
        crew_chief_name=crew.name if crew is not None else None,
        employee_code=crew.employee_code if crew is not None else None,
        user_id=entry.user_id,
        entry_date=entry.entry_date,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
        time_entries=[IntervalResponse.model_validate(iv) for iv in entry.intervals],
        total_hours=format_total_hours(entry.intervals),
    )


def _notifier(background_tasks: BackgroundTasks):
    def on_created(entry: TimesheetEntry) -> None:
        background_tasks.add_task(dispatch_entry_notification, build_entry_notification(entry))

    return on_created


@router.get("", response_model=list[EntryResponse])
def list_entries(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    principal: Principal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    rows = timesheet_service.list_visible_entries(db, principal, start_date, end_date)
    return [_to_response(r) for r in rows]


@router.get("/{entry_id}", response_model=EntryResponse)
def get_entry(
    entry_id: int,
    principal: Principal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return _to_response(timesheet_service.get_visible_entry(db, principal, entry_id))


@router.post("", response_model=BulkCreateResponse, status_code=status.HTTP_201_CREATED)
def create_entries(
    payload: BulkEntryCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(require_role(Role.PROGRAM_MANAGER)),
    db: Session = Depends(get_db),
):
    result = timesheet_service.create_bulk_entries(
        db, principal, payload, on_created=_notifier(background_tasks)
    )

    created = [
        CreatedEntry(
            id=u.entry.id,
            unique_id=u.entry.unique_id,
            job_id=u.entry.job_id,
            crew_chief_id=u.entry.crew_chief_id,
            job_index=u.job_index,
            crew_index=u.crew_index,
        )
        for u in result.created
    ]
    errors = [
        UnitError(job_index=u.job_index, crew_index=u.crew_index, job_id=u.job_id, kind=u.kind, error=u.error)
        for u in result.errors
    ]

    if not created:
        response.status_code = status.HTTP_400_BAD_REQUEST
        message = "No timesheet entries were created"
    elif errors:
        message = f"Created {len(created)} timesheet entries with {len(errors)} errors"
    else:
        message = f"Created {len(created)} timesheet entries"

    return BulkCreateResponse(message=message, created_count=len(created), created=created, errors=errors)


@router.post("/sequenced", response_model=SequencedCreateResponse, status_code=status.HTTP_201_CREATED)
def create_sequenced_entry(
    payload: SequencedEntryCreate,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(require_role(Role.PROGRAM_MANAGER)),
    db: Session = Depends(get_db),
):
    entry = timesheet_service.create_sequenced_entry(
        db, principal, payload, on_created=_notifier(background_tasks)
    )
    return SequencedCreateResponse(
        message="Timesheet entry created successfully",
        id=entry.id,
        unique_id=entry.unique_id,
        job_id=entry.job_id,
    )


@router.put("/{entry_id}", response_model=EntryResponse)
def update_entry(
    entry_id: int,
    payload: EntryUpdate,
    principal: Principal = Depends(require_role(Role.PROGRAM_MANAGER)),
    db: Session = Depends(get_db),
):
    entry = timesheet_service.update_entry(db, principal, entry_id, payload)
    return _to_response(entry)


@router.delete("/{entry_id}")
def delete_entry(
    entry_id: int,
    principal: Principal = Depends(require_role(Role.PROGRAM_MANAGER)),
    db: Session = Depends(get_db),
):
    timesheet_service.delete_entry(db, principal, entry_id)
    return {"message": "Timesheet entry deleted successfully"}
