from datetime import date, datetime, time
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class IntervalIn(BaseModel):
    # Strings so malformed values become per-unit validation errors instead of a 422.
    time_in: Optional[str] = None
    time_out: Optional[str] = None


class SequencedEntryCreate(BaseModel):
    company_id: int
    entry_date: date
    job_type: str
    unique_number: Union[str, int] = Field(description="1-4 digits, zero padded to 4 in the Job ID.")
    crew_chief_id: Optional[int] = None
    crew_chief_name: Optional[str] = None
    time_entries: list[IntervalIn] = Field(default_factory=list)


class BulkCrewLine(BaseModel):
    crew_chief_id: Optional[int] = None
    name: Optional[str] = None
    employee_code: Optional[str] = None
    time_in: Optional[str] = None
    time_out: Optional[str] = None


class BulkJobBlock(BaseModel):
    job_id: Optional[str] = None
    job_type: Optional[str] = None
    crews: list[BulkCrewLine] = Field(default_factory=list)


class BulkEntryCreate(BaseModel):
    company_id: int
    entry_date: date
    jobs: list[BulkJobBlock] = Field(default_factory=list)


class EntryUpdate(BaseModel):
    company_id: int
    crew_chief_id: int
    entry_date: date
    job_type: Optional[str] = None
    time_entries: list[IntervalIn] = Field(default_factory=list)


class IntervalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    time_in: time
    time_out: time


class EntryResponse(BaseModel):
    id: int
    unique_id: str
    job_id: str
    job_type: Optional[str]
    company_id: int
    company_name: Optional[str]
    crew_chief_id: int
    crew_chief_name: Optional[str]
    employee_code: Optional[str]
    user_id: Optional[int]
    entry_date: date
    created_at: datetime
    updated_at: datetime
    time_entries: list[IntervalResponse]
    total_hours: str


class CreatedEntry(BaseModel):
    id: int
    unique_id: str
    job_id: str
    crew_chief_id: int
    job_index: Optional[int] = None
    crew_index: Optional[int] = None


class UnitError(BaseModel):
    job_index: int
    crew_index: Optional[int]
    job_id: Optional[str]
    kind: str
    error: str


class BulkCreateResponse(BaseModel):
    message: str
    created_count: int
    created: list[CreatedEntry]
    errors: list[UnitError]


class SequencedCreateResponse(BaseModel):
    message: str
    id: int
    unique_id: str
    job_id: str
