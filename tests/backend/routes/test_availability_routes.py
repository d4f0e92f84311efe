import os
from datetime import date, time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.routes.availability_routes import (  # noqa: E402
    CreateAvailabilityWindowRequest,
    UpdateAvailabilityWindowRequest,
    create_availability_window,
    list_availability_windows,
    list_available_slots,
    remove_availability_window,
    update_availability_window,
    validate_window_bounds,
)
from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from backend.models.availability import SpecialistAvailability  # noqa: E402
from backend.scheduling.errors import StoreError  # noqa: E402
from backend.scheduling.slots import SlotAvailabilityEngine, SlotQueryStatus  # noqa: E402
from backend.scheduling.stores import AppointmentStore, Clock, SqlAppointmentStore, SqlAvailabilityStore  # noqa: E402


class FixedClock(Clock):
    def today(self) -> date:
        return date(2026, 1, 4)


class BrokenAppointmentStore(AppointmentStore):
    def list_appointments_for_specialist(self, specialist_id):
        raise StoreError('connection refused')

    def create_appointment(self, *args, **kwargs):
        raise StoreError('connection refused')


def window_request(**overrides) -> CreateAvailabilityWindowRequest:
    values = {
        'specialist_id': 'spec-1',
        'specialty_id': 1,
        'day_of_week': 1,
        'start_time': time(9, 0),
        'end_time': time(11, 0),
    }
    values.update(overrides)
    return CreateAvailabilityWindowRequest(**values)


def test_create_window_request_normalizes_fields() -> None:
    request = window_request(specialist_id=' spec-1 ', start_time=time(9, 0, 30))

    assert request.specialist_id == 'spec-1'
    assert request.start_time == time(9, 0)


@pytest.mark.parametrize('overrides', [{'day_of_week': 7}, {'day_of_week': -1}, {'specialist_id': '   '}])
def test_create_window_request_rejects_invalid_values(overrides) -> None:
    with pytest.raises(ValidationError):
        window_request(**overrides)


def test_validate_window_bounds_accepts_full_saturday_morning() -> None:
    validate_window_bounds(6, time(8, 0), time(14, 0))


@pytest.mark.parametrize(
    ('day_of_week', 'start_time', 'end_time', 'error_detail'),
    [
        (0, time(9, 0), time(10, 0), 'The clinic is closed on Sundays.'),
        (1, time(10, 0), time(10, 0), 'Start time must be before end time.'),
        (1, time(11, 0), time(10, 0), 'Start time must be before end time.'),
        (1, time(7, 30), time(10, 0), 'The clinic opens at 08:00.'),
        (1, time(17, 0), time(19, 30), 'The clinic closes at 19:00 on Mondays.'),
        (6, time(12, 0), time(15, 0), 'The clinic closes at 14:00 on Saturdays.'),
    ],
)
def test_validate_window_bounds_rejects_invalid_windows(
    day_of_week: int, start_time: time, end_time: time, error_detail: str
) -> None:
    with pytest.raises(HTTPException) as exception_info:
        validate_window_bounds(day_of_week, start_time, end_time)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == error_detail


@pytest.fixture
def availability_db(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('backend.routes.availability_routes.ensure_database_ready', lambda: None)

    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[SpecialistAvailability.__table__, Appointment.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, SpecialistAvailability.__table__])


def slot_engine(db, appointment_store: AppointmentStore | None = None) -> SlotAvailabilityEngine:
    return SlotAvailabilityEngine(
        SqlAvailabilityStore(db),
        appointment_store or SqlAppointmentStore(db),
        FixedClock(),
    )


def test_create_window_persists_active_window(availability_db) -> None:
    window = create_availability_window(window_request(), db=availability_db)

    assert window.id is not None
    assert window.is_active is True
    assert availability_db.query(SpecialistAvailability).count() == 1


def test_create_window_rejects_overlap_for_same_specialty(availability_db) -> None:
    create_availability_window(window_request(), db=availability_db)

    with pytest.raises(HTTPException) as exception_info:
        create_availability_window(
            window_request(start_time=time(10, 30), end_time=time(12, 0)),
            db=availability_db,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'This schedule overlaps an existing one.'


def test_create_window_allows_adjacent_and_other_specialty_windows(availability_db) -> None:
    create_availability_window(window_request(), db=availability_db)
    create_availability_window(window_request(start_time=time(11, 0), end_time=time(12, 0)), db=availability_db)
    create_availability_window(window_request(specialty_id=2), db=availability_db)

    windows = list_availability_windows('spec-1', db=availability_db)

    assert len(windows) == 3


def test_update_window_toggles_active_flag(availability_db) -> None:
    window = create_availability_window(window_request(), db=availability_db)

    updated = update_availability_window(
        window.id,
        UpdateAvailabilityWindowRequest(is_active=False),
        db=availability_db,
    )

    assert updated.is_active is False


def test_remove_window_returns_not_found_when_missing(availability_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        remove_availability_window(999, db=availability_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Schedule not found.'


def test_remove_window_deletes_it(availability_db) -> None:
    window = create_availability_window(window_request(), db=availability_db)

    remove_availability_window(window.id, db=availability_db)

    assert availability_db.query(SpecialistAvailability).count() == 0


def test_list_available_slots_groups_by_date(availability_db) -> None:
    create_availability_window(window_request(), db=availability_db)
    create_availability_window(
        window_request(day_of_week=6, start_time=time(12, 0), end_time=time(14, 0)),
        db=availability_db,
    )
    availability_db.add(
        Appointment(
            patient_id='patient-1',
            specialist_id='spec-1',
            specialty_id=1,
            status_id=AppointmentStatus.ACCEPTED.value,
            appointment_date=date(2026, 1, 5),
            appointment_time=time(9, 30),
            duration_minutes=30,
        )
    )
    availability_db.commit()

    response = list_available_slots(
        'spec-1',
        specialty_id=1,
        days=7,
        engine=slot_engine(availability_db),
    )

    assert response.status == SlotQueryStatus.OK
    assert [day.date for day in response.days] == [date(2026, 1, 5), date(2026, 1, 10)]
    assert response.days[0].day_name == 'Monday'
    assert [slot.label for slot in response.days[0].slots] == ['09:00', '10:00', '10:30']
    assert [slot.label for slot in response.days[1].slots] == ['12:00', '12:30', '13:00', '13:30']


def test_list_available_slots_signals_missing_schedule(availability_db) -> None:
    response = list_available_slots('spec-1', specialty_id=1, days=7, engine=slot_engine(availability_db))

    assert response.status == SlotQueryStatus.NO_SCHEDULE_CONFIGURED
    assert response.days == []


def test_list_available_slots_fails_closed_when_appointments_cannot_be_read(availability_db) -> None:
    create_availability_window(window_request(), db=availability_db)

    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(
            'spec-1',
            specialty_id=1,
            days=7,
            engine=slot_engine(availability_db, BrokenAppointmentStore()),
        )

    assert exception_info.value.status_code == 503
    assert exception_info.value.detail == 'Could not verify slot availability. Please try again.'
