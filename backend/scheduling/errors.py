"""Scheduling error types."""


class StoreError(Exception):
    """A backing store could not be read or written."""


class SlotTakenError(StoreError):
    """The store rejected a booking because the slot is already occupied."""


class SchedulingError(Exception):
    """Base class for failures surfaced by the slot engine."""


class AvailabilityFetchError(SchedulingError):
    def __init__(self, specialist_id: str, specialty_id: int):
        super().__init__(
            f'Could not load availability for specialist {specialist_id} and specialty {specialty_id}.'
        )
        self.specialist_id = specialist_id
        self.specialty_id = specialty_id


class AppointmentFetchError(SchedulingError):
    """Existing appointments could not be read; the affected slots are marked unavailable."""

    def __init__(self, specialist_id: str, slots=None):
        super().__init__(f'Could not load appointments for specialist {specialist_id}.')
        self.specialist_id = specialist_id
        self.slots = list(slots or [])
