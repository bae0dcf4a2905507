from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.core.authorization import Role, require_role
from app.core.principal import Principal
from app.database import get_db
from app.deps.auth import require_auth
from app.schemas.reference import (
    CompanyCreate,
    CompanyResponse,
    CrewChiefCreate,
    CrewChiefCreateResponse,
    CrewChiefResponse,
    JobTypeCreate,
    JobTypeResponse,
)
from app.services import reference_data

router = APIRouter(prefix="/timesheet", tags=["Reference Data"])


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


# ---------- Companies ----------

@router.get("/companies", response_model=List[CompanyResponse])
def list_companies(
    _principal: Principal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return reference_data.list_companies(db)


@router.post("/companies", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        row = reference_data.create_company(
            db,
            name=payload.name,
            abbreviation=payload.abbreviation,
            email=payload.email,
            email_enabled=payload.email_enabled,
        )
    except Exception:
        db.rollback()
        raise
    _commit(db)
    return row


@router.delete("/companies/{company_id}")
def delete_company(
    company_id: int,
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        reference_data.delete_company(db, company_id)
    except Exception:
        db.rollback()
        raise
    _commit(db)
    return {"message": "Company deleted successfully"}


# ---------- Job types ----------

@router.get("/job-types", response_model=List[JobTypeResponse])
def list_job_types(
    _principal: Principal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return reference_data.list_job_types(db)


@router.post("/job-types", response_model=JobTypeResponse, status_code=status.HTTP_201_CREATED)
def create_job_type(
    payload: JobTypeCreate,
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        row = reference_data.create_job_type(
            db, code=payload.code, name=payload.name, description=payload.description
        )
    except Exception:
        db.rollback()
        raise
    _commit(db)
    return row


@router.delete("/job-types/{job_type_id}")
def delete_job_type(
    job_type_id: int,
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        reference_data.delete_job_type(db, job_type_id)
    except Exception:
        db.rollback()
        raise
    _commit(db)
    return {"message": "Job type deleted successfully"}


# ---------- Crew chiefs ----------

@router.get("/crew-chiefs", response_model=List[CrewChiefResponse])
def list_crew_chiefs(
    company_id: Optional[int] = None,
    _principal: Principal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return reference_data.list_crew_chiefs(db, company_id)


@router.post("/crew-chiefs", response_model=CrewChiefCreateResponse, status_code=status.HTTP_201_CREATED)
def create_crew_chief(
    payload: CrewChiefCreate,
    response: Response,
    _principal: Principal = Depends(require_role(Role.PROGRAM_MANAGER)),
    db: Session = Depends(get_db),
):
    try:
        row, existed = reference_data.find_or_create_crew_chief(
            db, payload.company_id, payload.name, employee_code=payload.employee_code
        )
    except Exception:
        db.rollback()
        raise
    _commit(db)
    if existed:
        response.status_code = status.HTTP_200_OK
    return CrewChiefCreateResponse(
        id=row.id,
        company_id=row.company_id,
        name=row.name,
        employee_code=row.employee_code,
        created_at=row.created_at,
        existed=existed,
    )


@router.delete("/crew-chiefs/{crew_chief_id}")
def delete_crew_chief(
    crew_chief_id: int,
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        reference_data.delete_crew_chief(db, crew_chief_id)
    except Exception:
        db.rollback()
        raise
    _commit(db)
    return {"message": "Crew chief deleted successfully"}
