from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.database import Base


class JobIdReservation(Base):
    """Every Job ID ever attached to an entry. Rows are never deleted."""

    __tablename__ = "job_id_reservations"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String, nullable=False, unique=True)
    source = Column(String, nullable=False)  # sequenced|bulk
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
