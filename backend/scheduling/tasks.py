"""
Periodic maintenance jobs.

- mark_no_shows: active bookings whose day has passed become no-shows.
- send_session_reminders: notify tomorrow's active bookings once.

Both are invoked by an external scheduler through ``python -m backend.run_jobs``.
"""

import logging
from datetime import date, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from backend.models.booking import ACTIVE_BOOKING_STATUSES, Booking
from backend.services import notifications

logger = logging.getLogger(__name__)


def mark_no_shows(db: Session, today: date | None = None) -> int:
    """
    Move active bookings dated before the end of yesterday to ``no-show``.

    Returns the number of bookings updated. Bookings already moved are no
    longer active, so a repeated run updates nothing.
    """
    today = today or date.today()
    yesterday = today - timedelta(days=1)

    updated = db.query(Booking).filter(
        Booking.session_date <= yesterday,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    ).update({Booking.status: 'no-show'}, synchronize_session=False)
    db.commit()

    logger.info('Marked %s bookings as no-show', updated)
    return updated


def send_session_reminders(
    db: Session,
    today: date | None = None,
    send: Callable[[Booking], None] = notifications.send_session_reminder,
) -> int:
    """Notify every active booking dated tomorrow that has not been reminded yet."""
    today = today or date.today()
    tomorrow = today + timedelta(days=1)

    bookings = db.query(Booking).filter(
        Booking.session_date == tomorrow,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.reminder_sent.is_(False),
    ).order_by(Booking.session_time.asc()).all()

    logger.info('Found %s bookings to remind', len(bookings))

    reminded = 0
    for booking in bookings:
        try:
            send(booking)
            booking.reminder_sent = True
            db.commit()
            reminded += 1
        except Exception:
            db.rollback()
            logger.exception('Failed to send reminder for booking %s', booking.id)
            continue

    logger.info('Session reminder job completed: %s reminded', reminded)
    return reminded
