from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Principal:
    id: int
    username: str
    role: str
    company_id: Optional[int] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    # "session" or "bearer"
    via: str = "bearer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def as_user_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "company_id": self.company_id,
        }
