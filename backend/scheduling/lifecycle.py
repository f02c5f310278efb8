"""
Booking status lifecycle.

    pending -> confirmed -> completed
    pending | confirmed -> cancelled
    pending | confirmed -> no-show

Cancelled, completed and no-show bookings are final.
"""

import logging
from datetime import datetime

from backend.models.booking import BOOKING_STATUSES, Booking

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    'pending': {'confirmed', 'cancelled', 'no-show'},
    'confirmed': {'completed', 'cancelled', 'no-show'},
    'cancelled': set(),
    'completed': set(),
    'no-show': set(),
}


class BookingError(ValueError):
    """A booking operation that the current booking state does not permit."""


def ensure_transition(current: str, new: str) -> None:
    if new not in BOOKING_STATUSES:
        raise BookingError(f'Invalid booking status: {new}.')

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise BookingError(f'Cannot change booking status from {current} to {new}.')


def cancel_booking(
    booking: Booking,
    cancelled_by: int | None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Booking:
    if booking.status == 'cancelled':
        raise BookingError('Booking is already cancelled.')
    if booking.status == 'completed':
        raise BookingError('Cannot cancel a completed booking.')

    ensure_transition(booking.status, 'cancelled')

    booking.status = 'cancelled'
    booking.cancelled_at = now or datetime.now()
    booking.cancelled_by = cancelled_by
    if reason:
        booking.cancellation_reason = reason

    logger.info('Booking %s cancelled by user %s', booking.id, cancelled_by)
    return booking


def change_status(
    booking: Booking,
    new_status: str,
    actor_id: int | None,
    reason: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Apply an explicit status update. Returns False when nothing changed."""
    if new_status == booking.status:
        return False

    if new_status == 'cancelled':
        cancel_booking(booking, actor_id, reason, now)
        return True

    ensure_transition(booking.status, new_status)
    previous_status = booking.status
    booking.status = new_status

    logger.info('Booking %s moved from %s to %s', booking.id, previous_status, new_status)
    return True
