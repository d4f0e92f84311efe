"""
Collaborators consumed by the slot engine.

The engine only talks to the abstract stores below; the SQL implementations
wrap database failures in StoreError so callers never see driver exceptions.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, time

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment, AppointmentStatus
from backend.models.availability import SpecialistAvailability
from backend.scheduling.errors import SlotTakenError, StoreError
from backend.scheduling.overlap import ExistingAppointment

logger = logging.getLogger(__name__)


class WeeklyAvailabilityWindow(BaseModel):
    id: int | None = None
    specialist_id: str
    specialty_id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool = True

    class Config:
        from_attributes = True


class AvailabilityStore(ABC):
    @abstractmethod
    def list_active_windows(self, specialist_id: str, specialty_id: int) -> list[WeeklyAvailabilityWindow]:
        """Return the active weekly windows for a specialist and specialty.

        Raises:
            StoreError: if the store cannot be read
        """


class AppointmentStore(ABC):
    @abstractmethod
    def list_appointments_for_specialist(self, specialist_id: str) -> list[ExistingAppointment]:
        """Return every appointment of the specialist, whatever its status.

        Raises:
            StoreError: if the store cannot be read
        """

    @abstractmethod
    def create_appointment(
        self,
        patient_id: str,
        specialist_id: str,
        specialty_id: int,
        appointment_date: date,
        appointment_time: time,
        duration_minutes: int,
    ) -> int:
        """Persist a new requested appointment and return its id.

        Raises:
            SlotTakenError: if an active appointment already holds the slot
            StoreError: if the store cannot be written
        """


class Clock(ABC):
    @abstractmethod
    def today(self) -> date:
        pass


class SystemClock(Clock):
    def today(self) -> date:
        return date.today()


class SqlAvailabilityStore(AvailabilityStore):
    def __init__(self, db: Session):
        self.db = db

    def list_active_windows(self, specialist_id: str, specialty_id: int) -> list[WeeklyAvailabilityWindow]:
        try:
            rows = self.db.query(SpecialistAvailability).filter(
                SpecialistAvailability.specialist_id == specialist_id,
                SpecialistAvailability.specialty_id == specialty_id,
                SpecialistAvailability.is_active.is_(True),
            ).order_by(
                SpecialistAvailability.day_of_week.asc(),
                SpecialistAvailability.start_time.asc(),
            ).all()
        except SQLAlchemyError as exc:
            logger.exception('Availability lookup failed for specialist %s', specialist_id)
            raise StoreError('Availability lookup failed.') from exc

        return [WeeklyAvailabilityWindow.model_validate(row) for row in rows]


class SqlAppointmentStore(AppointmentStore):
    def __init__(self, db: Session):
        self.db = db

    def list_appointments_for_specialist(self, specialist_id: str) -> list[ExistingAppointment]:
        try:
            rows = self.db.query(Appointment).filter(
                Appointment.specialist_id == specialist_id,
            ).all()
        except SQLAlchemyError as exc:
            logger.exception('Appointment lookup failed for specialist %s', specialist_id)
            raise StoreError('Appointment lookup failed.') from exc

        return [ExistingAppointment.model_validate(row) for row in rows]

    def create_appointment(
        self,
        patient_id: str,
        specialist_id: str,
        specialty_id: int,
        appointment_date: date,
        appointment_time: time,
        duration_minutes: int,
    ) -> int:
        appointment = Appointment(
            patient_id=patient_id,
            specialist_id=specialist_id,
            specialty_id=specialty_id,
            status_id=AppointmentStatus.REQUESTED.value,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            duration_minutes=duration_minutes,
        )

        try:
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                'Slot %s %s for specialist %s was taken concurrently',
                appointment_date,
                appointment_time,
                specialist_id,
            )
            raise SlotTakenError('This time is already booked.') from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Appointment creation failed for specialist %s', specialist_id)
            raise StoreError('Appointment creation failed.') from exc

        logger.info('Created appointment %s for specialist %s', appointment.id, specialist_id)
        return appointment.id
