"""Appointment model definitions."""

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Index, Integer, SmallInteger, String, Time, text
from backend.database import Base


class AppointmentStatus(enum.IntEnum):
    REQUESTED = 1
    ACCEPTED = 2
    REJECTED = 3
    COMPLETED = 4
    CANCELLED = 5


# Statuses whose appointments block the specialist's calendar.
CALENDAR_STATUSES = frozenset(
    {AppointmentStatus.REQUESTED, AppointmentStatus.ACCEPTED, AppointmentStatus.COMPLETED}
)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.ACCEPTED: {AppointmentStatus.REQUESTED},
    AppointmentStatus.REJECTED: {AppointmentStatus.REQUESTED},
    AppointmentStatus.CANCELLED: {AppointmentStatus.REQUESTED, AppointmentStatus.ACCEPTED},
    AppointmentStatus.COMPLETED: {AppointmentStatus.ACCEPTED},
}

_ACTIVE_SLOT_CLAUSE = text("status_id IN (1, 2, 4)")


class Appointment(Base):
    """Represents a booked appointment."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "specialist_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_CLAUSE,
            sqlite_where=_ACTIVE_SLOT_CLAUSE,
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(String(36), nullable=False, index=True)
    specialist_id = Column(String(36), nullable=False, index=True)
    specialty_id = Column(Integer, nullable=False)
    status_id = Column(SmallInteger, nullable=False, default=AppointmentStatus.REQUESTED.value)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, default=30)
    cancellation_reason = Column(String)
    rejection_reason = Column(String)
    specialist_review = Column(String)
    patient_rating = Column(SmallInteger)
    patient_feedback = Column(String)
    survey_completed = Column(Boolean, nullable=False, default=False)
    survey_answers = Column(JSON)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
