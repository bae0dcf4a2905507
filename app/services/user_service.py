import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core.authorization import Role
from app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.core.principal import Principal
from app.models.company import Company
from app.models.timesheet_entry import TimesheetEntry
from app.models.user import User
from app.models.user_session import UserSession
from app.services.auth_service import hash_password

logger = logging.getLogger(__name__)

_ROLES = {r.value for r in Role}


def _check_role(role: str) -> str:
    role = (role or "").strip().lower()
    if role not in _ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(sorted(_ROLES))}")
    return role


def _check_company(db: Session, company_id: Optional[int], role: str) -> Optional[int]:
    if company_id is None:
        if role == Role.PROGRAM_MANAGER.value:
            raise ValidationError("Company is required for program managers")
        return None
    if db.get(Company, int(company_id)) is None:
        raise NotFoundError("Company not found")
    return int(company_id)


def _username_taken(db: Session, username: str, exclude_id: Optional[int] = None) -> bool:
    q = db.query(User.id).filter(User.username == username)
    if exclude_id is not None:
        q = q.filter(User.id != int(exclude_id))
    return q.first() is not None


def list_users(db: Session) -> list[User]:
    return db.query(User).options(joinedload(User.company)).order_by(User.username.asc()).all()


def get_user(db: Session, user_id: int) -> User:
    row = db.get(User, int(user_id))
    if row is None:
        raise NotFoundError("User not found")
    return row


def create_user(
    db: Session,
    *,
    username: str,
    password: str,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    role: str = Role.PROGRAM_MANAGER.value,
    company_id: Optional[int] = None,
) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("Username and password are required")
    role = _check_role(role)
    company_id = _check_company(db, company_id, role)

    if _username_taken(db, username):
        raise ConflictError("Username already exists")

    row = User(
        username=username,
        password_hash=hash_password(password),
        full_name=full_name,
        email=email,
        role=role,
        company_id=company_id,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError("Username already exists") from exc

    logger.info("User created", extra={"user_id": row.id, "role": role})
    return row


def update_user(
    db: Session,
    user_id: int,
    *,
    username: Optional[str] = None,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[str] = None,
    company_id: Optional[int] = None,
    password: Optional[str] = None,
) -> User:
    """Last write wins; fields left as None are kept."""
    row = get_user(db, user_id)

    if username is not None:
        username = username.strip()
        if not username:
            raise ValidationError("Username is required")
        if _username_taken(db, username, exclude_id=row.id):
            raise ConflictError("Username already exists")
        row.username = username
    if full_name is not None:
        row.full_name = full_name
    if email is not None:
        row.email = email
    if role is not None:
        row.role = _check_role(role)
    if company_id is not None:
        row.company_id = _check_company(db, company_id, row.role)
    elif row.role == Role.PROGRAM_MANAGER.value and row.company_id is None:
        raise ValidationError("Company is required for program managers")
    if password:
        row.password_hash = hash_password(password)

    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError("Username already exists") from exc
    return row


def delete_user(db: Session, principal: Principal, user_id: int) -> None:
    if int(user_id) == int(principal.id):
        logger.warning("Self-delete refused", extra={"user_id": principal.id})
        raise AuthorizationError("Cannot delete your own account")

    row = get_user(db, user_id)
    if row.role == Role.ADMIN.value:
        raise AuthorizationError("Cannot delete admin users")

    # Entries outlive their creator; only admins and accountants see them afterwards.
    db.query(TimesheetEntry).filter(TimesheetEntry.user_id == row.id).update(
        {TimesheetEntry.user_id: None}, synchronize_session=False
    )
    db.query(UserSession).filter(UserSession.user_id == row.id).delete(synchronize_session=False)
    db.delete(row)
    db.flush()
    logger.info("User deleted", extra={"user_id": int(user_id), "deleted_by": principal.id})
