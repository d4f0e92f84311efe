from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.database import SessionLocal, ensure_availability_schema, ensure_appointment_schema
from backend.scheduling.slots import SlotAvailabilityEngine
from backend.scheduling.stores import SqlAppointmentStore, SqlAvailabilityStore

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_slot_engine(db: Session = Depends(get_db)) -> SlotAvailabilityEngine:
    return SlotAvailabilityEngine(SqlAvailabilityStore(db), SqlAppointmentStore(db))
