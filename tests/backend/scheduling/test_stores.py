import os
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from backend.models.availability import SpecialistAvailability  # noqa: E402
from backend.scheduling.errors import SlotTakenError, StoreError  # noqa: E402
from backend.scheduling.slots import SlotAvailabilityEngine  # noqa: E402
from backend.scheduling.stores import SqlAppointmentStore, SqlAvailabilityStore  # noqa: E402


@pytest.fixture
def store_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[SpecialistAvailability.__table__, Appointment.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, SpecialistAvailability.__table__])


def add_window(db, day_of_week: int, start: time, end: time, specialty_id: int = 1, is_active: bool = True):
    window = SpecialistAvailability(
        specialist_id='spec-1',
        specialty_id=specialty_id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_active=is_active,
    )
    db.add(window)
    db.commit()
    return window


def test_list_active_windows_filters_and_orders(store_db) -> None:
    add_window(store_db, 2, time(9, 0), time(10, 0))
    add_window(store_db, 1, time(14, 0), time(15, 0))
    add_window(store_db, 1, time(9, 0), time(10, 0))
    add_window(store_db, 1, time(11, 0), time(12, 0), is_active=False)
    add_window(store_db, 1, time(16, 0), time(17, 0), specialty_id=2)

    windows = SqlAvailabilityStore(store_db).list_active_windows('spec-1', 1)

    assert [(window.day_of_week, window.start_time) for window in windows] == [
        (1, time(9, 0)),
        (1, time(14, 0)),
        (2, time(9, 0)),
    ]
    assert all(window.is_active for window in windows)


def test_list_active_windows_wraps_database_errors(store_db, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_query(*_args, **_kwargs):
        raise OperationalError('SELECT', {}, Exception('connection lost'))

    monkeypatch.setattr(store_db, 'query', broken_query)

    with pytest.raises(StoreError):
        SqlAvailabilityStore(store_db).list_active_windows('spec-1', 1)


def test_create_appointment_persists_a_requested_booking(store_db) -> None:
    store = SqlAppointmentStore(store_db)

    appointment_id = store.create_appointment('patient-1', 'spec-1', 1, date(2026, 1, 5), time(9, 0), 30)

    stored = store_db.query(Appointment).filter(Appointment.id == appointment_id).one()
    assert stored.status_id == AppointmentStatus.REQUESTED.value
    assert stored.patient_id == 'patient-1'

    appointments = store.list_appointments_for_specialist('spec-1')
    assert len(appointments) == 1
    assert appointments[0].appointment_time == time(9, 0)
    assert appointments[0].occupies_calendar


def test_create_appointment_rejects_a_second_active_booking(store_db) -> None:
    store = SqlAppointmentStore(store_db)
    store.create_appointment('patient-1', 'spec-1', 1, date(2026, 1, 5), time(9, 0), 30)

    with pytest.raises(SlotTakenError):
        store.create_appointment('patient-2', 'spec-1', 1, date(2026, 1, 5), time(9, 0), 30)


def test_cancelled_booking_does_not_hold_the_slot(store_db) -> None:
    store = SqlAppointmentStore(store_db)
    first_id = store.create_appointment('patient-1', 'spec-1', 1, date(2026, 1, 5), time(9, 0), 30)
    first = store_db.query(Appointment).filter(Appointment.id == first_id).one()
    first.status_id = AppointmentStatus.CANCELLED.value
    store_db.commit()

    second_id = store.create_appointment('patient-2', 'spec-1', 1, date(2026, 1, 5), time(9, 0), 30)

    assert second_id != first_id


def test_engine_over_sql_stores(store_db) -> None:
    add_window(store_db, 1, time(9, 0), time(10, 0))
    store = SqlAppointmentStore(store_db)
    store.create_appointment('patient-1', 'spec-1', 1, date(2026, 1, 5), time(9, 30), 30)

    class Clock:
        def today(self):
            return date(2026, 1, 4)

    engine = SlotAvailabilityEngine(SqlAvailabilityStore(store_db), store, Clock())
    result = engine.generate_slots('spec-1', 1, window_days=7)

    assert [(slot.date, slot.time) for slot in result.slots] == [(date(2026, 1, 5), time(9, 0))]
