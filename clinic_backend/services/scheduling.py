"""Slot arithmetic and appointment state rules.

Everything here is a pure function of its arguments: no database access and
no clock reads. Times are epoch milliseconds; weekly availability is kept as
wall-clock "HH:MM" strings and resolved against a calendar date in the
clinic's time zone.

Appointments are duck-typed: anything with ``start_time``, ``end_time``,
``status`` and (for the maintenance plan) ``reminder_sent`` attributes works,
which covers both ORM rows and plain test doubles.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Sequence

from clinic_backend.core.errors import InvalidStateTransition, ScheduleValidationError
from clinic_backend.models.appointment import STATUS_CANCELED, STATUS_COMPLETED, STATUS_SCHEDULED

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
MINUTES_PER_DAY = 24 * 60
DEFAULT_SLOT_MINUTES = 30

ALLOWED_TRANSITIONS = {
    STATUS_SCHEDULED: frozenset({STATUS_COMPLETED, STATUS_CANCELED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_CANCELED: frozenset(),
}

LOCKED_APPOINTMENT_MESSAGE = 'This appointment can no longer be modified.'


@dataclass(frozen=True)
class TimeWindow:
    start: str
    end: str


@dataclass(frozen=True)
class DayAvailability:
    day: int  # 0 = Sunday ... 6 = Saturday
    slots: tuple[TimeWindow, ...]


@dataclass(frozen=True, order=True)
class Slot:
    start: int
    end: int


@dataclass
class MaintenancePlan:
    to_complete: list = field(default_factory=list)
    to_remind: list = field(default_factory=list)


def clock_to_minutes(value: str) -> int:
    """Parse ``HH:MM`` into minutes after midnight; ``24:00`` marks end of day."""
    parts = value.strip().split(':') if isinstance(value, str) else []
    if len(parts) != 2 or not all(len(part) == 2 and part.isdigit() for part in parts):
        raise ScheduleValidationError(f'Invalid time "{value}". Use the HH:MM format.')

    hours, minutes = int(parts[0]), int(parts[1])
    total = hours * 60 + minutes
    if minutes > 59 or total > MINUTES_PER_DAY:
        raise ScheduleValidationError(f'Invalid time "{value}". Use the HH:MM format.')

    return total


def minutes_to_clock(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def day_of_week(day: date) -> int:
    return (day.weekday() + 1) % 7


def validate_weekly_availability(entries: Iterable[DayAvailability]) -> list[DayAvailability]:
    """Check every window and return the entries sorted by day and start."""
    seen_days: set[int] = set()
    normalized: list[DayAvailability] = []

    for entry in entries:
        if not 0 <= entry.day <= 6:
            raise ScheduleValidationError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        if entry.day in seen_days:
            raise ScheduleValidationError(f'Day {entry.day} is listed more than once.')
        seen_days.add(entry.day)

        windows = []
        for window in entry.slots:
            start = clock_to_minutes(window.start)
            end = clock_to_minutes(window.end)
            if start >= end:
                raise ScheduleValidationError(
                    f'Availability window {window.start}-{window.end} must start before it ends.'
                )
            windows.append((start, end, TimeWindow(start=minutes_to_clock(start), end=minutes_to_clock(end))))

        if windows:
            windows.sort(key=lambda item: (item[0], item[1]))
            normalized.append(DayAvailability(day=entry.day, slots=tuple(window for _, _, window in windows)))

    return sorted(normalized, key=lambda entry: entry.day)


def wall_clock_to_ms(day: date, minutes: int, tz: tzinfo) -> int:
    local = datetime.combine(day, time(0, 0), tzinfo=tz) + timedelta(minutes=minutes)
    return int(local.timestamp()) * 1000


def ms_to_local(value_ms: int, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(value_ms / 1000, tz)


def day_bounds_ms(day: date, tz: tzinfo) -> tuple[int, int]:
    return wall_clock_to_ms(day, 0, tz), wall_clock_to_ms(day, MINUTES_PER_DAY, tz)


def windows_for_day(
    availability: Sequence[DayAvailability],
    day: date,
    tz: tzinfo = timezone.utc,
) -> list[tuple[int, int]]:
    weekday = day_of_week(day)
    entry = next((item for item in availability if item.day == weekday), None)
    if entry is None:
        return []

    return [
        (
            wall_clock_to_ms(day, clock_to_minutes(window.start), tz),
            wall_clock_to_ms(day, clock_to_minutes(window.end), tz),
        )
        for window in entry.slots
    ]


def generate_candidate_slots(
    availability: Sequence[DayAvailability],
    day: date,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
    tz: tzinfo = timezone.utc,
) -> list[Slot]:
    step = slot_minutes * MINUTE_MS
    candidates: set[Slot] = set()

    for window_start, window_end in windows_for_day(availability, day, tz):
        current = window_start
        while current + step <= window_end:
            candidates.add(Slot(start=current, end=current + step))
            current += step

    return sorted(candidates)


def intervals_overlap(first_start: int, first_end: int, second_start: int, second_end: int) -> bool:
    return first_start < second_end and first_end > second_start


def find_conflicts(start: int, end: int, appointments: Iterable) -> list:
    return [
        appointment
        for appointment in appointments
        if appointment.status == STATUS_SCHEDULED
        and intervals_overlap(start, end, appointment.start_time, appointment.end_time)
    ]


def compute_available_slots(
    availability: Sequence[DayAvailability],
    day: date,
    existing_appointments: Iterable,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
    tz: tzinfo = timezone.utc,
) -> list[Slot]:
    booked = [
        (appointment.start_time, appointment.end_time)
        for appointment in existing_appointments
        if appointment.status == STATUS_SCHEDULED
    ]

    return [
        slot
        for slot in generate_candidate_slots(availability, day, slot_minutes, tz)
        if not any(intervals_overlap(slot.start, slot.end, booked_start, booked_end) for booked_start, booked_end in booked)
    ]


def drop_past_slots(slots: Iterable[Slot], now_ms: int) -> list[Slot]:
    return [slot for slot in slots if slot.start > now_ms]


def fits_availability(
    availability: Sequence[DayAvailability],
    start: int,
    end: int,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
    tz: tzinfo = timezone.utc,
) -> bool:
    """True when ``start`` sits on a window's slot grid and ``end`` stays inside it."""
    step = slot_minutes * MINUTE_MS
    day = ms_to_local(start, tz).date()

    return any(
        window_start <= start
        and end <= window_end
        and (start - window_start) % step == 0
        for window_start, window_end in windows_for_day(availability, day, tz)
    )


def ensure_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidStateTransition(LOCKED_APPOINTMENT_MESSAGE)


def plan_maintenance(now_ms: int, appointments: Iterable, reminder_lead_ms: int) -> MaintenancePlan:
    plan = MaintenancePlan()

    for appointment in sorted(appointments, key=lambda item: item.start_time):
        if appointment.status != STATUS_SCHEDULED:
            continue

        if appointment.end_time < now_ms:
            plan.to_complete.append(appointment)
        elif not appointment.reminder_sent and 0 < appointment.start_time - now_ms <= reminder_lead_ms:
            plan.to_remind.append(appointment)

    return plan
