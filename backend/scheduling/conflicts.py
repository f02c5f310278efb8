"""
Booking conflict detection.

A proposed booking conflicts with any active booking of the same therapist on
the same day whose interval overlaps it. Identical start times always overlap.
"""

from datetime import date

from sqlalchemy.orm import Session

from backend.models.booking import ACTIVE_BOOKING_STATUSES, Booking
from backend.scheduling.availability import parse_time_of_day
from backend.scheduling.slots import intervals_overlap


def get_active_bookings(
    db: Session,
    therapist_id: int,
    session_date: date,
    exclude_booking_id: int | None = None,
) -> list[Booking]:
    query = db.query(Booking).filter(
        Booking.therapist_id == therapist_id,
        Booking.session_date == session_date,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)

    return query.order_by(Booking.session_time.asc()).all()


def find_conflicting_booking(
    db: Session,
    therapist_id: int,
    session_date: date,
    session_time: str,
    duration: int,
    exclude_booking_id: int | None = None,
) -> Booking | None:
    proposed_start = parse_time_of_day(session_time)
    proposed_end = proposed_start + duration

    for booking in get_active_bookings(db, therapist_id, session_date, exclude_booking_id):
        if booking.session_time == session_time:
            return booking

        booked_start = parse_time_of_day(booking.session_time)
        if intervals_overlap(proposed_start, proposed_end, booked_start, booked_start + booking.duration):
            return booking

    return None
