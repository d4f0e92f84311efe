"""Medical history model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String
from backend.database import Base


class MedicalHistoryRecord(Base):
    """A clinical record written by a specialist, usually when completing an appointment."""
    __tablename__ = "medical_history"

    id = Column(Integer, primary_key=True)
    patient_id = Column(String(36), nullable=False, index=True)
    specialist_id = Column(String(36), nullable=False, index=True)
    appointment_id = Column(Integer, index=True)
    height = Column(Float)
    weight = Column(Float)
    temperature = Column(Float)
    pressure = Column(String(20))
    diagnosis = Column(String, nullable=False)
    observations = Column(String)
    # List of {"key": ..., "value": ...} pairs, at most three.
    additional_fields = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
