import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError, ValidationError
from app.core.principal import Principal
from app.models.user import User
from app.models.user_session import UserSession

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_EXP_DAYS = 30
SESSION_TTL_HOURS = 24

INVALID_CREDENTIALS = "Invalid username or password"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def session_ttl_seconds() -> int:
    return _env_int("SESSION_TTL_HOURS", SESSION_TTL_HOURS) * 3600


def _get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET is required")
    if len(secret) < 32:
        raise ValueError("JWT_SECRET must be at least 32 characters")
    return secret


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        # unknown or malformed hash
        return False


def create_access_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
        "company_id": user.company_id,
        "iat": now,
        "exp": now + timedelta(days=_env_int("JWT_EXP_DAYS", JWT_EXP_DAYS)),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise ValueError("Invalid or expired token") from exc

    if "sub" not in payload or "role" not in payload:
        raise ValueError("Invalid token claims")

    return payload


def principal_from_claims(db: Session, claims: dict) -> Optional[Principal]:
    """None when the token's user no longer exists. Role and company come from the current row."""
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        return None
    user = db.get(User, user_id)
    if user is None:
        return None
    return principal_from_user(user, via="bearer")


def principal_from_user(user: User, via: str = "session") -> Principal:
    return Principal(
        id=int(user.id),
        username=user.username,
        role=user.role,
        company_id=user.company_id,
        full_name=user.full_name,
        email=user.email,
        via=via,
    )


def authenticate(db: Session, username: str, password: str) -> User:
    """
    Unknown usernames and wrong passwords produce the same error so the
    response cannot be used to enumerate accounts.
    """
    user = db.query(User).filter(User.username == username).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Login failed", extra={"username": username})
        raise AuthenticationError(INVALID_CREDENTIALS)
    return user


def establish_session(db: Session, user: User) -> tuple[str, str]:
    """Returns (session_token, bearer_token). Caller owns the transaction."""
    now = datetime.utcnow()
    session_token = secrets.token_urlsafe(32)
    db.add(
        UserSession(
            token=session_token,
            user_id=int(user.id),
            created_at=now,
            expires_at=now + timedelta(seconds=session_ttl_seconds()),
        )
    )
    db.flush()

    bearer_token = create_access_token(user)

    logger.info("Session established", extra={"user_id": user.id})
    return session_token, bearer_token


def lookup_session_user(db: Session, session_token: str) -> Optional[User]:
    row = (
        db.query(UserSession)
        .filter(
            UserSession.token == session_token,
            UserSession.expires_at > datetime.utcnow(),
        )
        .first()
    )
    if row is None:
        return None
    return db.get(User, row.user_id)


def end_session(db: Session, session_token: str) -> bool:
    deleted = (
        db.query(UserSession)
        .filter(UserSession.token == session_token)
        .delete(synchronize_session=False)
    )
    if deleted:
        logger.info("Session invalidated")
    return bool(deleted)


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    if not new_password:
        raise ValidationError("New password is required")
    user.password_hash = hash_password(new_password)
    db.flush()


def bootstrap_admin(db: Session) -> Optional[User]:
    username = os.getenv("ADMIN_USERNAME")
    password = os.getenv("ADMIN_PASSWORD")
    if not username or not password:
        return None

    existing = db.query(User).filter(User.username == username).first()
    if existing is not None:
        return None

    user = User(
        username=username,
        password_hash=hash_password(password),
        full_name="Administrator",
        email=os.getenv("ADMIN_EMAIL"),
        role="admin",
    )
    db.add(user)
    db.flush()
    logger.info("Bootstrap admin created", extra={"username": username})
    return user
