import logging
from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import ALLOWED_TRANSITIONS, Appointment, AppointmentStatus
from backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db, get_slot_engine
from backend.scheduling import clinic_hours
from backend.scheduling.errors import AppointmentFetchError, AvailabilityFetchError, SlotTakenError, StoreError
from backend.scheduling.slots import SLOT_DURATION_MINUTES, SlotAvailabilityEngine, TimeSlot

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 600


def _normalize_id(value: str, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    return normalized


def _normalize_text(value: str, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    if len(normalized) > MAX_REASON_LENGTH:
        raise ValueError(f'{label} must be {MAX_REASON_LENGTH} characters or fewer.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    patient_id: str
    specialist_id: str
    specialty_id: int
    date: date
    time: time

    @field_validator('patient_id')
    @classmethod
    def validate_patient_id(cls, value: str) -> str:
        return _normalize_id(value, 'Patient id')

    @field_validator('specialist_id')
    @classmethod
    def validate_specialist_id(cls, value: str) -> str:
        return _normalize_id(value, 'Specialist id')

    @field_validator('time')
    @classmethod
    def drop_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class ReasonRequest(BaseModel):
    reason: str

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        return _normalize_text(value, 'Reason')


class ReviewRequest(BaseModel):
    review: str

    @field_validator('review')
    @classmethod
    def validate_review(cls, value: str) -> str:
        return _normalize_text(value, 'Review')


class RatingRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = ''

    ('comment')
    
    def validate_comment(cls, value: str) -> str:
        value = value.strip()
        if len(value) > MAX_REASON_LENGTH:
            raise ValueError(f'Comment must be {MAX_REASON_LENGTH} characters or fewer.')
        return value


class SurveyRequest(BaseModel):
    care_quality: str
    punctuality: str
    diagnosis_clarity: str
    would_recommend: str
    facilities: str
    comments: str = ''

    ('care_quality', 'punctuality', 'diagnosis_clarity', 'would_recommend', 'facilities')
    
    def validate_answer(cls, value: str) -> str:
        return _normalize_text(value, 'Answer')

    ('comments')
    
    def strip_comments(cls, value: str) -> str:
        return value.strip()


class AppointmentResponse(BaseModel):
    id: int
    patient_id: str
    specialist_id: str
    specialty_id: int
    status_id: int
    status: str
    appointment_date: date
    appointment_time: time
    duration_minutes: int
    cancellation_reason: str | None = None
    rejection_reason: str | None = None
    specialist_review: str | None = None
    patient_rating: int | None = None
    patient_feedback: str | None = None
    survey_completed: bool = False
    survey_answers: dict[str, str] | None = None


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        specialist_id=appointment.specialist_id,
        specialty_id=appointment.specialty_id,
        status_id=appointment.status_id,
        status=AppointmentStatus(appointment.status_id).name.lower(),
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
        duration_minutes=appointment.duration_minutes or SLOT_DURATION_MINUTES,
        cancellation_reason=appointment.cancellation_reason,
        rejection_reason=appointment.rejection_reason,
        specialist_review=appointment.specialist_review,
        patient_rating=appointment.patient_rating,
        patient_feedback=appointment.patient_feedback,
        survey_completed=bool(appointment.survey_completed),
        survey_answers=appointment.survey_answers,
    )


def get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


def transition_appointment(db: Session, appointment_id: int, target: AppointmentStatus, **fields) -> Appointment:
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        current = AppointmentStatus(appointment.status_id)
        if current not in ALLOWED_TRANSITIONS[target]:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot move an appointment from {current.name.lower()} to {target.name.lower()}.',
            )

        appointment.status_id = target.value
        for name, value in fields.items():
            setattr(appointment, name, value)

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Appointment %s moved from %s to %s', appointment_id, current.name, target.name)
    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    engine: SlotAvailabilityEngine = Depends(get_slot_engine),
):
    if data.date < engine.clock.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments must be scheduled in the future.',
        )

    if not clinic_hours.fits_clinic_hours(data.date, data.time, SLOT_DURATION_MINUTES):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointment is outside clinic hours.',
        )

    ensure_database_ready()

    slot = TimeSlot(date=data.date, time=data.time)

    try:
        offered = engine.offered_slots(data.specialist_id, data.specialty_id, data.date)
        if offered.no_schedule_configured:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This specialist has no schedule for the selected specialty.',
            )

        if all(candidate.time != slot.time for candidate in offered.slots):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='The specialist does not offer this time.',
            )

        if not engine.revalidate_before_booking(data.specialist_id, slot):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This time was just booked by another patient. Please pick another slot.',
            )

        appointment_id = engine.appointment_store.create_appointment(
            patient_id=data.patient_id,
            specialist_id=data.specialist_id,
            specialty_id=data.specialty_id,
            appointment_date=slot.date,
            appointment_time=slot.time,
            duration_minutes=slot.duration_minutes,
        )
    except SlotTakenError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This time was just booked by another patient. Please pick another slot.',
        ) from exc
    except (AvailabilityFetchError, AppointmentFetchError, StoreError) as exc:
        raise database_unavailable() from exc

    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).one()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_response(appointment)


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = db.query(Appointment).order_by(
            Appointment.appointment_date.asc(),
            Appointment.appointment_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_response(appointment) for appointment in appointments]


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return to_response(appointment)


@router.get('/specialists/{specialist_id}', response_model=list[AppointmentResponse])
def list_specialist_appointments(specialist_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = db.query(Appointment).filter(
            Appointment.specialist_id == specialist_id,
        ).order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_response(appointment) for appointment in appointments]


@router.get('/patients/{patient_id}', response_model=list[AppointmentResponse])
def list_patient_appointments(patient_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
        ).order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_response(appointment) for appointment in appointments]


@router.post('/{appointment_id}/accept', response_model=AppointmentResponse)
def accept_appointment(appointment_id: int, db: Session = Depends(get_db)):
    return to_response(transition_appointment(db, appointment_id, AppointmentStatus.ACCEPTED))


@router.post('/{appointment_id}/reject', response_model=AppointmentResponse)
def reject_appointment(appointment_id: int, data: ReasonRequest, db: Session = Depends(get_db)):
    return to_response(
        transition_appointment(db, appointment_id, AppointmentStatus.REJECTED, rejection_reason=data.reason)
    )


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(appointment_id: int, data: ReasonRequest, db: Session = Depends(get_db)):
    return to_response(
        transition_appointment(db, appointment_id, AppointmentStatus.CANCELLED, cancellation_reason=data.reason)
    )


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(appointment_id: int, data: ReviewRequest, db: Session = Depends(get_db)):
    return to_response(
        transition_appointment(db, appointment_id, AppointmentStatus.COMPLETED, specialist_review=data.review)
    )


@router.post('/{appointment_id}/rating', response_model=AppointmentResponse)
def rate_appointment(appointment_id: int, data: RatingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        if appointment.status_id != AppointmentStatus.COMPLETED or appointment.patient_rating is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Only completed appointments can be rated, once.',
            )

        appointment.patient_rating = data.rating
        appointment.patient_feedback = data.comment or None
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return to_response(appointment)


@router.post('/{appointment_id}/survey', response_model=AppointmentResponse)
def complete_survey(appointment_id: int, data: SurveyRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        if (
            appointment.status_id != AppointmentStatus.COMPLETED
            or not appointment.specialist_review
            or appointment.survey_completed
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='The survey is available once per completed and reviewed appointment.',
            )

        appointment.survey_completed = True
        appointment.survey_answers = data.model_dump()
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return to_response(appointment)
