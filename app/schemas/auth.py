from typing import Optional

from pydantic import BaseModel


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: str
    company_id: Optional[int] = None


class LoginResponse(BaseModel):
    message: str
    token: str
    user: UserOut


class AuthCheckResponse(BaseModel):
    authenticated: bool
    user: Optional[UserOut] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str
