import logging
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.availability import SpecialistAvailability
from backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db, get_slot_engine
from backend.scheduling import clinic_hours
from backend.scheduling.errors import AppointmentFetchError, AvailabilityFetchError
from backend.scheduling.slots import SlotAvailabilityEngine, SlotQueryStatus, group_by_date

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)


class CreateAvailabilityWindowRequest(BaseModel):
    specialist_id: str
    specialty_id: int
    day_of_week: int = Field(ge=0, le=6, description='0=Sunday ... 6=Saturday')
    start_time: time
    end_time: time

    @field_validator('specialist_id')
    @classmethod
    def validate_specialist_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Specialist id is required.')
        return normalized

    @field_validator('start_time', 'end_time')
    @classmethod
    def drop_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class UpdateAvailabilityWindowRequest(BaseModel):
    is_active: bool


class AvailabilityWindowResponse(BaseModel):
    id: int
    specialist_id: str
    specialty_id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    time: time
    label: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int


class SlotDayResponse(BaseModel):
    date: date
    day_name: str
    slots: list[SlotResponse]


class SlotsResponse(BaseModel):
    specialist_id: str
    specialty_id: int
    status: SlotQueryStatus
    days: list[SlotDayResponse]


def validate_window_bounds(day_of_week: int, start_time: time, end_time: time) -> None:
    bounds = clinic_hours.clinic_bounds(day_of_week)
    if bounds is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The clinic is closed on Sundays.',
        )

    if start_time >= end_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Start time must be before end time.',
        )

    open_time, close_time = bounds
    if start_time < open_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'The clinic opens at {open_time:%H:%M}.',
        )

    if end_time > close_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'The clinic closes at {close_time:%H:%M} on {clinic_hours.DAY_NAMES[day_of_week]}s.',
        )


@router.get('/specialists/{specialist_id}/windows', response_model=list[AvailabilityWindowResponse])
def list_availability_windows(specialist_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(SpecialistAvailability).filter(
            SpecialistAvailability.specialist_id == specialist_id,
        ).order_by(
            SpecialistAvailability.day_of_week.asc(),
            SpecialistAvailability.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/windows', response_model=AvailabilityWindowResponse, status_code=status.HTTP_201_CREATED)
def create_availability_window(data: CreateAvailabilityWindowRequest, db: Session = Depends(get_db)):
    validate_window_bounds(data.day_of_week, data.start_time, data.end_time)

    ensure_database_ready()

    try:
        overlapping_window = db.query(SpecialistAvailability).filter(
            SpecialistAvailability.specialist_id == data.specialist_id,
            SpecialistAvailability.specialty_id == data.specialty_id,
            SpecialistAvailability.day_of_week == data.day_of_week,
            SpecialistAvailability.start_time < data.end_time,
            SpecialistAvailability.end_time > data.start_time,
        ).first()

        if overlapping_window:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This schedule overlaps an existing one.',
            )

        window = SpecialistAvailability(
            specialist_id=data.specialist_id,
            specialty_id=data.specialty_id,
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            is_active=True,
        )

        db.add(window)
        db.commit()
        db.refresh(window)

        return window
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/windows/{window_id}', response_model=AvailabilityWindowResponse)
def update_availability_window(
    window_id: int,
    data: UpdateAvailabilityWindowRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        window = db.query(SpecialistAvailability).filter(SpecialistAvailability.id == window_id).first()

        if not window:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Schedule not found.',
            )

        window.is_active = data.is_active
        db.commit()
        db.refresh(window)

        return window
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/windows/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_availability_window(window_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        window = db.query(SpecialistAvailability).filter(SpecialistAvailability.id == window_id).first()

        if not window:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Schedule not found.',
            )

        db.delete(window)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/specialists/{specialist_id}/slots', response_model=SlotsResponse)
def list_available_slots(
    specialist_id: str,
    specialty_id: int = Query(...),
    days: int = Query(default=config.SLOT_WINDOW_DAYS, ge=1, le=config.MAX_SLOT_WINDOW_DAYS),
    engine: SlotAvailabilityEngine = Depends(get_slot_engine),
):
    ensure_database_ready()

    try:
        result = engine.generate_slots(specialist_id, specialty_id, days)
    except AvailabilityFetchError as exc:
        logger.warning('Slot query failed: %s', exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Could not load the specialist schedule. Please try again.',
        ) from exc
    except AppointmentFetchError as exc:
        logger.warning('Slot query failed closed for %d slots: %s', len(exc.slots), exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Could not verify slot availability. Please try again.',
        ) from exc

    return SlotsResponse(
        specialist_id=specialist_id,
        specialty_id=specialty_id,
        status=result.status,
        days=[
            SlotDayResponse(
                date=slot_date,
                day_name=day_slots[0].day_name,
                slots=[
                    SlotResponse(
                        time=slot.time,
                        label=slot.label,
                        start_time=slot.start,
                        end_time=slot.end,
                        duration_minutes=slot.duration_minutes,
                    )
                    for slot in day_slots
                ],
            )
            for slot_date, day_slots in group_by_date(result.slots).items()
        ],
    )
