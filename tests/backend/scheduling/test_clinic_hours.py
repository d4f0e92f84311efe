from datetime import date, time

import pytest

from backend.scheduling.clinic_hours import (
    clinic_bounds,
    clip_to_clinic_hours,
    day_of_week,
    fits_clinic_hours,
    from_minutes,
    to_minutes,
)


@pytest.mark.parametrize(
    'day,expected',
    [
        (date(2026, 1, 4), 0),
        (date(2026, 1, 5), 1),
        (date(2026, 1, 9), 5),
        (date(2026, 1, 10), 6),
    ],
)
def test_day_of_week_counts_from_sunday(day: date, expected: int) -> None:
    assert day_of_week(day) == expected


def test_minutes_round_trip_through_time() -> None:
    assert to_minutes(time(13, 45)) == 825
    assert from_minutes(825) == time(13, 45)


def test_clinic_bounds() -> None:
    assert clinic_bounds(0) is None
    assert clinic_bounds(3) == (time(8, 0), time(19, 0))
    assert clinic_bounds(6) == (time(8, 0), time(14, 0))


@pytest.mark.parametrize(
    'weekday,start,end,expected',
    [
        (1, time(9, 0), time(11, 0), (540, 660)),
        (1, time(7, 0), time(9, 0), (480, 540)),
        (1, time(18, 0), time(21, 0), (1080, 1140)),
        (6, time(12, 0), time(15, 0), (720, 840)),
        (6, time(14, 0), time(15, 0), None),
        (1, time(19, 0), time(20, 0), None),
        (1, time(6, 0), time(7, 30), None),
        (0, time(9, 0), time(11, 0), None),
    ],
)
def test_clip_to_clinic_hours(weekday: int, start: time, end: time, expected) -> None:
    assert clip_to_clinic_hours(weekday, start, end) == expected


@pytest.mark.parametrize(
    'day,start,expected',
    [
        (date(2026, 1, 5), time(8, 0), True),
        (date(2026, 1, 5), time(18, 30), True),
        (date(2026, 1, 5), time(18, 45), False),
        (date(2026, 1, 5), time(7, 30), False),
        (date(2026, 1, 10), time(13, 30), True),
        (date(2026, 1, 10), time(14, 0), False),
        (date(2026, 1, 4), time(10, 0), False),
    ],
)
def test_fits_clinic_hours(day: date, start: time, expected: bool) -> None:
    assert fits_clinic_hours(day, start, 30) is expected
