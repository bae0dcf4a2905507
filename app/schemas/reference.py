from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CompanyCreate(BaseModel):
    name: str
    abbreviation: str
    email: Optional[str] = None
    email_enabled: bool = True


class CompanyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    abbreviation: str
    email: Optional[str]
    email_enabled: bool
    created_at: datetime


class JobTypeCreate(BaseModel):
    code: str
    name: str
    description: Optional[str] = None


class JobTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    # None for the built-in fallback list
    id: Optional[int] = None
    code: str
    name: str
    description: Optional[str] = None


class CrewChiefCreate(BaseModel):
    name: str
    company_id: int
    employee_code: Optional[str] = None


class CrewChiefResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    name: str
    employee_code: Optional[str]
    created_at: datetime


class CrewChiefCreateResponse(CrewChiefResponse):
    existed: bool
