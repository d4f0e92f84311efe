"""Conflict detection between candidate slots and existing appointments."""

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from pydantic import BaseModel

from backend.models.appointment import CALENDAR_STATUSES

DEFAULT_APPOINTMENT_DURATION_MINUTES = 30


class ExistingAppointment(BaseModel):
    specialist_id: str
    appointment_date: date
    appointment_time: time
    duration_minutes: int | None = None
    status_id: int

    class Config:
        from_attributes = True

    @property
    def occupies_calendar(self) -> bool:
        return self.status_id in CALENDAR_STATUSES

    @property
    def interval(self) -> tuple[datetime, datetime]:
        start = datetime.combine(self.appointment_date, self.appointment_time)
        duration = self.duration_minutes or DEFAULT_APPOINTMENT_DURATION_MINUTES
        return start, start + timedelta(minutes=duration)


def intervals_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    # Touching endpoints do not overlap.
    return start < other_end and end > other_start


def active_intervals(appointments: Iterable[ExistingAppointment]) -> list[tuple[datetime, datetime]]:
    return [appointment.interval for appointment in appointments if appointment.occupies_calendar]


def has_conflict(start: datetime, end: datetime, intervals: Iterable[tuple[datetime, datetime]]) -> bool:
    return any(intervals_overlap(start, end, other_start, other_end) for other_start, other_end in intervals)
