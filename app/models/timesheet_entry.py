from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship

from app.database import Base


class TimesheetEntry(Base):
    __tablename__ = "timesheet_entries"

    id = Column(Integer, primary_key=True, index=True)

    unique_id = Column(String, nullable=False, unique=True)
    job_id = Column(String, nullable=False, index=True)
    job_type = Column(String, nullable=True)

    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    crew_chief_id = Column(Integer, ForeignKey("crew_chiefs.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    entry_date = Column(Date, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company")
    crew_chief = relationship("CrewChief")
    intervals = relationship(
        "TimeInterval",
        back_populates="entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TimeInterval.time_in",
    )


class TimeInterval(Base):
    __tablename__ = "time_intervals"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    timesheet_entry_id = Column(
        Integer,
        ForeignKey("timesheet_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    time_in = Column(Time, nullable=False)
    time_out = Column(Time, nullable=False)

    entry = relationship("TimesheetEntry", back_populates="intervals")
