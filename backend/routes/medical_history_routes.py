import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment
from backend.models.medical_history import MedicalHistoryRecord
from backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db

router = APIRouter(tags=['medical-history'])

logger = logging.getLogger(__name__)

MAX_ADDITIONAL_FIELDS = 3


class AdditionalField(BaseModel):
    key: str
    value: str

    @field_validator('key', 'value')
    @classmethod
    def strip_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Additional fields need both a key and a value.')
        return normalized


class ClinicalMeasurements(BaseModel):
    height: float | None = Field(default=None, gt=0)
    weight: float | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, gt=0)
    pressure: str | None = None
    observations: str | None = None
    additional_fields: list[AdditionalField] = Field(default_factory=list, max_length=MAX_ADDITIONAL_FIELDS)

    @field_validator('pressure', 'observations')
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class CreateMedicalRecordRequest(ClinicalMeasurements):
    patient_id: str
    specialist_id: str
    appointment_id: int | None = None
    diagnosis: str

    @field_validator('patient_id', 'specialist_id', 'diagnosis')
    @classmethod
    def require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient, specialist and diagnosis are required.')
        return normalized


class UpdateMedicalRecordRequest(ClinicalMeasurements):
    diagnosis: str

    @field_validator('diagnosis')
    @classmethod
    def require_diagnosis(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Diagnosis is required.')
        return normalized


class MedicalRecordResponse(BaseModel):
    id: int
    patient_id: str
    specialist_id: str
    appointment_id: int | None = None
    height: float | None = None
    weight: float | None = None
    temperature: float | None = None
    pressure: str | None = None
    diagnosis: str
    observations: str | None = None
    additional_fields: list[AdditionalField]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def get_record_or_404(db: Session, record_id: int) -> MedicalHistoryRecord:
    record = db.query(MedicalHistoryRecord).filter(MedicalHistoryRecord.id == record_id).first()
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Medical record not found.',
        )
    return record


def newest_first(query):
    return query.order_by(MedicalHistoryRecord.created_at.desc(), MedicalHistoryRecord.id.desc())


@router.post('', response_model=MedicalRecordResponse, status_code=status.HTTP_201_CREATED)
def create_medical_record(data: CreateMedicalRecordRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        if data.appointment_id is not None:
            appointment = db.query(Appointment).filter(Appointment.id == data.appointment_id).first()
            if not appointment:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail='Appointment not found.',
                )
            if appointment.patient_id != data.patient_id or appointment.specialist_id != data.specialist_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail='The appointment belongs to a different patient or specialist.',
                )

        record = MedicalHistoryRecord(**data.model_dump())
        db.add(record)
        db.commit()
        db.refresh(record)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Medical record %s created for patient %s', record.id, record.patient_id)
    return record


@router.get('', response_model=list[MedicalRecordResponse])
def list_medical_records(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return newest_first(db.query(MedicalHistoryRecord)).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/patients/{patient_id}', response_model=list[MedicalRecordResponse])
def list_patient_history(patient_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return newest_first(
            db.query(MedicalHistoryRecord).filter(MedicalHistoryRecord.patient_id == patient_id)
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/patients/{patient_id}/specialists/{specialist_id}', response_model=list[MedicalRecordResponse])
def list_patient_history_by_specialist(patient_id: str, specialist_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return newest_first(
            db.query(MedicalHistoryRecord).filter(
                MedicalHistoryRecord.patient_id == patient_id,
                MedicalHistoryRecord.specialist_id == specialist_id,
            )
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/specialists/{specialist_id}/patients', response_model=list[str])
def list_specialist_patients(specialist_id: str, db: Session = Depends(get_db)):
    """Patients the specialist has written records for, each listed once."""
    ensure_database_ready()

    try:
        rows = db.query(MedicalHistoryRecord.patient_id).filter(
            MedicalHistoryRecord.specialist_id == specialist_id,
        ).order_by(MedicalHistoryRecord.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return list(dict.fromkeys(patient_id for (patient_id,) in rows))


@router.get('/{record_id}', response_model=MedicalRecordResponse)
def get_medical_record(record_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return get_record_or_404(db, record_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{record_id}', response_model=MedicalRecordResponse)
def update_medical_record(record_id: int, data: UpdateMedicalRecordRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        record = get_record_or_404(db, record_id)

        for name, value in data.model_dump().items():
            setattr(record, name, value)

        db.commit()
        db.refresh(record)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return record
