from app.models.company import Company
from app.models.crew_chief import CrewChief
from app.models.job_id_reservation import JobIdReservation
from app.models.job_type import JobType
from app.models.timesheet_entry import TimeInterval, TimesheetEntry
from app.models.user import User
from app.models.user_session import UserSession

__all__ = [
    "Company",
    "CrewChief",
    "JobIdReservation",
    "JobType",
    "TimeInterval",
    "TimesheetEntry",
    "User",
    "UserSession",
]
