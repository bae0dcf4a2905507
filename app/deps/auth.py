from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError
from app.core.principal import Principal
from app.database import get_db
from app.services.auth_service import (
    lookup_session_user,
    principal_from_claims,
    principal_from_user,
    verify_token,
)

SESSION_COOKIE = "timesheet_session"


def _parse_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthenticationError("Invalid Authorization header")

    return parts[1].strip()


def resolve_principal(request: Request, db: Session) -> Optional[Principal]:
    """Session cookie first, bearer token second. None when neither is present."""
    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        user = lookup_session_user(db, session_token)
        if user is not None:
            return principal_from_user(user, via="session")

    token = _parse_bearer_token(request)
    if token is None:
        return None

    try:
        claims = verify_token(token)
    except ValueError as exc:
        raise AuthenticationError(str(exc)) from exc

    principal = principal_from_claims(db, claims)
    if principal is None:
        raise AuthenticationError("Not authenticated")
    return principal


def optional_principal(request: Request, db: Session = Depends(get_db)) -> Optional[Principal]:
    try:
        return resolve_principal(request, db)
    except AuthenticationError:
        return None


def require_auth(request: Request, db: Session = Depends(get_db)) -> Principal:
    principal = resolve_principal(request, db)
    if principal is None:
        raise AuthenticationError("Not authenticated")

    request.state.user_id = principal.id
    request.state.role = principal.role
    return principal
