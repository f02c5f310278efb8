"""
Slot generation.

Splits a working window into fixed-size slots and drops every slot that
overlaps an existing booking.
"""

from typing import Iterable

from backend.scheduling.availability import format_time_of_day, parse_time_of_day

SLOT_DURATION_MINUTES = 60


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and end_a > start_b


def generate_available_slots(
    start: str,
    end: str,
    booked: Iterable[tuple[str, int]],
    slot_duration: int = SLOT_DURATION_MINUTES,
) -> list[str]:
    """
    Return the ``HH:MM`` start of every free slot between ``start`` and ``end``.

    ``booked`` holds ``(session_time, duration_minutes)`` pairs of the active
    bookings for the same therapist and date. A slot is kept only when its
    ``[t, t + slot_duration)`` interval misses every booked interval.
    """
    window_start = parse_time_of_day(start)
    window_end = parse_time_of_day(end)

    booked_intervals = []
    for session_time, duration in booked:
        booked_start = parse_time_of_day(session_time)
        booked_intervals.append((booked_start, booked_start + duration))

    available_slots = []
    current = window_start
    while current + slot_duration <= window_end:
        slot_end = current + slot_duration
        if not any(
            intervals_overlap(current, slot_end, booked_start, booked_end)
            for booked_start, booked_end in booked_intervals
        ):
            available_slots.append(format_time_of_day(current))
        current += slot_duration

    return available_slots


def fits_working_hours(start: str, end: str, session_time: str, duration: int) -> bool:
    session_start = parse_time_of_day(session_time)
    return parse_time_of_day(start) <= session_start and session_start + duration <= parse_time_of_day(end)
