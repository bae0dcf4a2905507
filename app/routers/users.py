from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.authorization import Role, require_role
from app.core.principal import Principal
from app.database import get_db
from app.models.user import User
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services import user_service

router = APIRouter(prefix="/users", tags=["Users"])


def _to_response(user: User) -> UserResponse:
    company = user.company
    return UserResponse(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        company_id=user.company_id,
        company_name=company.name if company is not None else None,
        company_abbr=company.abbreviation if company is not None else None,
        created_at=user.created_at,
    )


@router.get("", response_model=List[UserResponse])
def list_users(
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    return [_to_response(u) for u in user_service.list_users(db)]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        row = user_service.create_user(db, **payload.model_dump())
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    return _to_response(row)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    _principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        row = user_service.update_user(db, user_id, **payload.model_dump())
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    return _to_response(row)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    principal: Principal = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        user_service.delete_user(db, principal, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "User deleted successfully"}
