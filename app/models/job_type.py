from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.database import Base


class JobType(Base):
    __tablename__ = "job_types"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
