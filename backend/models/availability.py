"""Availability model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, SmallInteger, String, Time
from backend.database import Base


class SpecialistAvailability(Base):
    """A recurring weekly window in which a specialist offers a specialty."""
    __tablename__ = "specialist_availability"

    id = Column(Integer, primary_key=True)
    specialist_id = Column(String(36), nullable=False, index=True)
    specialty_id = Column(Integer, nullable=False)
    day_of_week = Column(SmallInteger, nullable=False)  # 0=Sunday ... 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
