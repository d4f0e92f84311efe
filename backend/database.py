import logging
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

logger = logging.getLogger(__name__)

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'specialist_availability' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('specialist_availability')}
        migration_steps = [
            ('is_active', 'ALTER TABLE specialist_availability ADD COLUMN is_active BOOLEAN DEFAULT TRUE'),
            ('created_at', 'ALTER TABLE specialist_availability ADD COLUMN created_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_specialist_day '
                    'ON specialist_availability(specialist_id, specialty_id, day_of_week)'
                )
            )

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('duration_minutes', 'ALTER TABLE appointments ADD COLUMN duration_minutes INTEGER DEFAULT 30'),
            ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
            ('rejection_reason', 'ALTER TABLE appointments ADD COLUMN rejection_reason VARCHAR'),
            ('specialist_review', 'ALTER TABLE appointments ADD COLUMN specialist_review VARCHAR'),
            ('patient_rating', 'ALTER TABLE appointments ADD COLUMN patient_rating SMALLINT'),
            ('patient_feedback', 'ALTER TABLE appointments ADD COLUMN patient_feedback VARCHAR'),
            ('survey_completed', 'ALTER TABLE appointments ADD COLUMN survey_completed BOOLEAN DEFAULT FALSE'),
            ('survey_answers', 'ALTER TABLE appointments ADD COLUMN survey_answers JSON'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_specialist_date '
                    'ON appointments(specialist_id, appointment_date)'
                )
            )

        try:
            with engine.begin() as connection:
                connection.execute(
                    text(
                        'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_slot '
                        'ON appointments(specialist_id, appointment_date, appointment_time) '
                        'WHERE status_id IN (1, 2, 4)'
                    )
                )
        except IntegrityError:
            _log_duplicate_active_slots()

        _appointment_schema_checked = True


def _log_duplicate_active_slots() -> None:
    with engine.connect() as connection:
        duplicates = connection.execute(
            text(
                'SELECT specialist_id, appointment_date, appointment_time, COUNT(*) '
                'FROM appointments WHERE status_id IN (1, 2, 4) '
                'GROUP BY specialist_id, appointment_date, appointment_time '
                'HAVING COUNT(*) > 1'
            )
        ).all()

    logger.error(
        'Could not create uq_appointments_active_slot: %d slots hold more than one active appointment. '
        'Cancel or reschedule the extra bookings; until then double booking is only prevented by revalidation.',
        len(duplicates),
    )
    for specialist_id, appointment_date, appointment_time, count in duplicates:
        logger.error(
            'Duplicate active appointments: specialist=%s date=%s time=%s count=%s',
            specialist_id,
            appointment_date,
            appointment_time,
            count,
        )
