"""Clinic opening hours and weekday helpers.

Days of the week follow the stored convention: 0 = Sunday ... 6 = Saturday.
"""

from datetime import date, time

SUNDAY = 0
SATURDAY = 6

OPEN_TIME = time(8, 0)
WEEKDAY_CLOSE_TIME = time(19, 0)
SATURDAY_CLOSE_TIME = time(14, 0)

DAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')


def day_of_week(day: date) -> int:
    return (day.weekday() + 1) % 7


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(*divmod(minutes, 60))


def clinic_bounds(weekday: int) -> tuple[time, time] | None:
    """Return (open, close) for a stored day of week, or None when closed."""
    if weekday == SUNDAY:
        return None
    if weekday == SATURDAY:
        return OPEN_TIME, SATURDAY_CLOSE_TIME
    return OPEN_TIME, WEEKDAY_CLOSE_TIME


def clip_to_clinic_hours(weekday: int, start: time, end: time) -> tuple[int, int] | None:
    """Clip a window to clinic hours, in minutes since midnight.

    Returns None when nothing of the window is left inside opening hours.
    """
    bounds = clinic_bounds(weekday)
    if bounds is None:
        return None

    open_minutes, close_minutes = (to_minutes(bound) for bound in bounds)
    start_minutes = max(to_minutes(start), open_minutes)
    end_minutes = min(to_minutes(end), close_minutes)

    if start_minutes >= close_minutes or start_minutes >= end_minutes:
        return None

    return start_minutes, end_minutes


def fits_clinic_hours(day: date, start: time, duration_minutes: int) -> bool:
    bounds = clinic_bounds(day_of_week(day))
    if bounds is None:
        return False

    open_time, close_time = bounds
    start_minutes = to_minutes(start)
    return start_minutes >= to_minutes(open_time) and start_minutes + duration_minutes <= to_minutes(close_time)
