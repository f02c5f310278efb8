"""
Weekly availability resolution.

A therapist's schedule is a mapping of day name to a working window:

    {"monday": {"start": "09:00", "end": "17:00", "available": True}, ...}

`resolve_availability` answers whether the therapist works on a given
calendar date and, if so, between which times.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Mapping

TIME_OF_DAY_PATTERN = re.compile(r'^([01][0-9]|2[0-3]):([0-5][0-9])$')


class DayOfWeek(str, Enum):
    SUNDAY = 'sunday'
    MONDAY = 'monday'
    TUESDAY = 'tuesday'
    WEDNESDAY = 'wednesday'
    THURSDAY = 'thursday'
    FRIDAY = 'friday'
    SATURDAY = 'saturday'

    @classmethod
    def from_date(cls, value: date) -> 'DayOfWeek':
        return _WEEKDAY_TO_DAY[value.weekday()]


# date.weekday() numbering: Monday is 0.
_WEEKDAY_TO_DAY = {
    0: DayOfWeek.MONDAY,
    1: DayOfWeek.TUESDAY,
    2: DayOfWeek.WEDNESDAY,
    3: DayOfWeek.THURSDAY,
    4: DayOfWeek.FRIDAY,
    5: DayOfWeek.SATURDAY,
    6: DayOfWeek.SUNDAY,
}

WEEKDAY_HOURS = ('09:00', '17:00')
WEEKEND_HOURS = ('09:00', '13:00')


def default_weekly_availability() -> dict[str, dict[str, Any]]:
    """Return a fresh copy of the schedule new therapists start with."""
    schedule = {}
    for day in DayOfWeek:
        is_weekend = day in (DayOfWeek.SATURDAY, DayOfWeek.SUNDAY)
        start, end = WEEKEND_HOURS if is_weekend else WEEKDAY_HOURS
        schedule[day.value] = {'start': start, 'end': end, 'available': not is_weekend}
    return schedule


def parse_time_of_day(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight."""
    match = TIME_OF_DAY_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        raise ValueError(f'Invalid time of day: {value!r}. Expected HH:MM.')
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time_of_day(minutes: int) -> str:
    hours, remainder = divmod(minutes, 60)
    return f'{hours:02d}:{remainder:02d}'


def validate_weekly_availability(schedule: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Normalize a submitted schedule, rejecting unknown days and bad windows."""
    normalized: dict[str, dict[str, Any]] = {}
    for raw_day, record in schedule.items():
        try:
            day = DayOfWeek(str(raw_day).strip().lower())
        except ValueError as exc:
            raise ValueError(f'Unknown day of week: {raw_day!r}.') from exc

        if not isinstance(record, Mapping):
            raise ValueError(f'Availability for {day.value} must be an object.')

        available = record.get('available', False)
        if not isinstance(available, bool):
            raise ValueError(f'Availability flag for {day.value} must be true or false.')

        start = record.get('start')
        end = record.get('end')
        if parse_time_of_day(start) >= parse_time_of_day(end):
            raise ValueError(f'Availability for {day.value} must end after it starts.')

        normalized[day.value] = {
            'start': start,
            'end': end,
            'available': available,
        }
    return normalized


@dataclass(frozen=True)
class ResolvedAvailability:
    day_of_week: DayOfWeek
    available: bool
    start: str | None = None
    end: str | None = None


def resolve_availability(schedule: Mapping[str, Any] | None, target_date: date) -> ResolvedAvailability:
    day = DayOfWeek.from_date(target_date)
    record = (schedule or {}).get(day.value)

    if not record or not record.get('available'):
        return ResolvedAvailability(day_of_week=day, available=False)

    return ResolvedAvailability(
        day_of_week=day,
        available=True,
        start=record['start'],
        end=record['end'],
    )
