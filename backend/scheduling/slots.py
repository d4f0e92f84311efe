"""
Slot generation service.

Turns weekly availability windows into 30-minute bookable slots for a rolling
window of days and filters out slots that collide with the specialist's
active appointments.
"""

import enum
import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from pydantic import BaseModel

from backend.scheduling import clinic_hours
from backend.scheduling.errors import AppointmentFetchError, AvailabilityFetchError, StoreError
from backend.scheduling.overlap import active_intervals, has_conflict
from backend.scheduling.stores import (
    AppointmentStore,
    AvailabilityStore,
    Clock,
    SystemClock,
    WeeklyAvailabilityWindow,
)

logger = logging.getLogger(__name__)

SLOT_DURATION_MINUTES = 30
DEFAULT_WINDOW_DAYS = 15


class TimeSlot(BaseModel):
    date: date
    time: time
    duration_minutes: int = SLOT_DURATION_MINUTES
    available: bool = True

    @property
    def start(self) -> datetime:
        return datetime.combine(self.date, self.time)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def day_of_week(self) -> int:
        return clinic_hours.day_of_week(self.date)

    @property
    def day_name(self) -> str:
        return clinic_hours.DAY_NAMES[self.day_of_week]

    @property
    def label(self) -> str:
        return self.time.strftime('%H:%M')


class SlotQueryStatus(str, enum.Enum):
    OK = 'ok'
    NO_SCHEDULE_CONFIGURED = 'no_schedule_configured'


class SlotQueryResult(BaseModel):
    slots: list[TimeSlot]
    status: SlotQueryStatus = SlotQueryStatus.OK
    candidate_count: int = 0

    @property
    def no_schedule_configured(self) -> bool:
        return self.status == SlotQueryStatus.NO_SCHEDULE_CONFIGURED


def build_day_slots(day: date, windows: Iterable[WeeklyAvailabilityWindow]) -> list[TimeSlot]:
    """Candidate slots for one date, in window order then time order."""
    weekday = clinic_hours.day_of_week(day)
    slots: list[TimeSlot] = []

    if weekday == clinic_hours.SUNDAY:
        return slots

    for window in windows:
        if window.day_of_week != weekday:
            continue

        clipped = clinic_hours.clip_to_clinic_hours(weekday, window.start_time, window.end_time)
        if clipped is None:
            continue

        start_minutes, end_minutes = clipped
        # Offsets are measured from the window's own start, not from the hour.
        for offset in range(start_minutes, end_minutes - SLOT_DURATION_MINUTES + 1, SLOT_DURATION_MINUTES):
            slots.append(TimeSlot(date=day, time=clinic_hours.from_minutes(offset)))

    return slots


def build_candidate_slots(
    windows: list[WeeklyAvailabilityWindow],
    first_day: date,
    window_days: int,
) -> list[TimeSlot]:
    slots: list[TimeSlot] = []
    for index in range(window_days):
        slots.extend(build_day_slots(first_day + timedelta(days=index), windows))
    return slots


def group_by_date(slots: Iterable[TimeSlot]) -> dict[date, list[TimeSlot]]:
    groups: dict[date, list[TimeSlot]] = {}
    for slot in slots:
        groups.setdefault(slot.date, []).append(slot)
    return groups


class SlotAvailabilityEngine:
    """Computes bookable slots from injected stores.

    Holds no selection state: every call reads fresh data, so the engine can be
    shared between concurrent requests.
    """

    def __init__(
        self,
        availability_store: AvailabilityStore,
        appointment_store: AppointmentStore,
        clock: Clock | None = None,
    ):
        self.availability_store = availability_store
        self.appointment_store = appointment_store
        self.clock = clock or SystemClock()

    def _active_windows(self, specialist_id: str, specialty_id: int) -> list[WeeklyAvailabilityWindow]:
        try:
            windows = self.availability_store.list_active_windows(specialist_id, specialty_id)
        except StoreError as exc:
            raise AvailabilityFetchError(specialist_id, specialty_id) from exc

        windows = [window for window in windows if window.is_active]
        if not windows:
            logger.info(
                'No schedule configured for specialist %s and specialty %s',
                specialist_id,
                specialty_id,
            )
        return windows

    def generate_slots(
        self,
        specialist_id: str,
        specialty_id: int,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ) -> SlotQueryResult:
        """
        Return the available slots for the next ``window_days`` days, today included.

        Raises:
            AvailabilityFetchError: the availability store failed
            AppointmentFetchError: the appointment store failed; every candidate
                slot carried by the error is marked unavailable
        """
        windows = self._active_windows(specialist_id, specialty_id)
        if not windows:
            return SlotQueryResult(slots=[], status=SlotQueryStatus.NO_SCHEDULE_CONFIGURED)

        candidates = build_candidate_slots(windows, self.clock.today(), window_days)
        self.check_conflicts(specialist_id, candidates)

        available = [slot for slot in candidates if slot.available]
        logger.debug(
            'Generated %d slots for specialist %s, %d available',
            len(candidates),
            specialist_id,
            len(available),
        )
        return SlotQueryResult(slots=available, candidate_count=len(candidates))

    def offered_slots(self, specialist_id: str, specialty_id: int, day: date) -> SlotQueryResult:
        """
        Return every slot the specialist's schedule offers on ``day``, booked or not.

        Raises:
            AvailabilityFetchError: the availability store failed
        """
        windows = self._active_windows(specialist_id, specialty_id)
        if not windows:
            return SlotQueryResult(slots=[], status=SlotQueryStatus.NO_SCHEDULE_CONFIGURED)

        slots = build_day_slots(day, windows)
        return SlotQueryResult(slots=slots, candidate_count=len(slots))

    def check_conflicts(self, specialist_id: str, slots: list[TimeSlot]) -> None:
        """Mark every slot overlapping an active appointment as unavailable."""
        try:
            appointments = self.appointment_store.list_appointments_for_specialist(specialist_id)
        except StoreError as exc:
            for slot in slots:
                slot.available = False
            logger.error('Marking %d slots unavailable for specialist %s', len(slots), specialist_id)
            raise AppointmentFetchError(specialist_id, slots) from exc

        intervals = active_intervals(appointments)
        if not intervals:
            return

        for slot in slots:
            slot.available = not has_conflict(slot.start, slot.end, intervals)

    def revalidate_before_booking(self, specialist_id: str, candidate_slot: TimeSlot) -> bool:
        """
        Check a single slot against a fresh read of the specialist's appointments.

        Returns False when an active appointment now overlaps the slot.

        Raises:
            AppointmentFetchError: the appointment store failed
        """
        try:
            appointments = self.appointment_store.list_appointments_for_specialist(specialist_id)
        except StoreError as exc:
            raise AppointmentFetchError(specialist_id, [candidate_slot]) from exc

        if has_conflict(candidate_slot.start, candidate_slot.end, active_intervals(appointments)):
            logger.warning(
                'Slot %s %s for specialist %s is no longer available',
                candidate_slot.date,
                candidate_slot.label,
                specialist_id,
            )
            return False

        return True
