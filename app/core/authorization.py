import logging
from enum import Enum

from fastapi import Depends

from app.core.errors import AuthorizationError
from app.core.principal import Principal
from app.deps.auth import require_auth

logger = logging.getLogger(__name__)


class Role(Enum):
    ACCOUNTANT = "accountant"
    PROGRAM_MANAGER = "program_manager"
    ADMIN = "admin"


RANK = {
    Role.ACCOUNTANT: 1,
    Role.PROGRAM_MANAGER: 2,
    Role.ADMIN: 3,
}


def role_of(principal: Principal) -> Role:
    try:
        return Role(str(principal.role).lower())
    except ValueError as exc:
        raise AuthorizationError("Invalid role") from exc


def require_role(role: Role):
    def dependency(principal: Principal = Depends(require_auth)) -> Principal:
        if RANK[role_of(principal)] < RANK[role]:
            logger.info(
                "Insufficient role",
                extra={"user_id": principal.id, "role": principal.role, "required": role.value},
            )
            raise AuthorizationError("Insufficient role")
        return principal

    return dependency


def sees_all_entries(principal: Principal) -> bool:
    return role_of(principal) in {Role.ADMIN, Role.ACCOUNTANT}


def ensure_owner(principal: Principal, entry) -> None:
    if role_of(principal) == Role.ADMIN:
        return
    if entry.user_id is not None and int(entry.user_id) == int(principal.id):
        return

    logger.warning(
        "Ownership violation",
        extra={"user_id": principal.id, "entry_id": entry.id, "owner_id": entry.user_id},
    )
    raise AuthorizationError("You can only modify entries you created")
