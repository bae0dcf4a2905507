import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError
from app.core.principal import Principal
from app.database import get_db
from app.deps.auth import SESSION_COOKIE, optional_principal, require_auth
from app.models.user import User
from app.schemas.auth import (
    AuthCheckResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    UserOut,
)
from app.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _cookie_secure() -> bool:
    return os.getenv("SESSION_COOKIE_SECURE", "").strip().lower() in {"1", "true", "yes", "on"}


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    try:
        user = auth_service.authenticate(db, payload.username, payload.password)
        session_token, bearer_token = auth_service.establish_session(db, user)
        db.commit()
    except Exception:
        db.rollback()
        raise

    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_token,
        max_age=auth_service.session_ttl_seconds(),
        httponly=True,
        samesite="lax",
        secure=_cookie_secure(),
    )

    logger.info("Login successful", extra={"user_id": user.id})
    return LoginResponse(
        message="Login successful",
        token=bearer_token,
        user=UserOut(**auth_service.principal_from_user(user).as_user_dict()),
    )


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        auth_service.end_session(db, session_token)
        db.commit()
    response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logout successful"}


@router.get("/check", response_model=AuthCheckResponse)
def check(principal: Optional[Principal] = Depends(optional_principal)):
    if principal is None:
        return AuthCheckResponse(authenticated=False)
    return AuthCheckResponse(authenticated=True, user=UserOut(**principal.as_user_dict()))


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    principal: Principal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    user = db.get(User, principal.id)
    if user is None:
        raise AuthenticationError("Not authenticated")
    try:
        auth_service.change_password(db, user, payload.current_password, payload.new_password)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Password updated successfully"}
