"""
Booking notifications.

Each hook emits one structured log record for the notification it stands for.
Callers treat any failure here as non-fatal.
"""

import logging

from backend.models.booking import Booking

logger = logging.getLogger(__name__)


def _describe(booking: Booking) -> dict:
    therapist_user = booking.therapist.user if booking.therapist else None
    return {
        'booking_id': booking.id,
        'patient_email': booking.patient.email if booking.patient else None,
        'therapist_email': therapist_user.email if therapist_user else None,
        'session_date': booking.session_date.isoformat() if booking.session_date else None,
        'session_time': booking.session_time,
        'session_type': booking.session_type,
        'status': booking.status,
    }


def send_booking_confirmation(booking: Booking) -> None:
    logger.info('Booking confirmation notification', extra={'notification': _describe(booking)})


def send_booking_status_update(booking: Booking) -> None:
    logger.info('Booking status update notification', extra={'notification': _describe(booking)})


def send_booking_cancellation(booking: Booking) -> None:
    payload = _describe(booking)
    payload['cancellation_reason'] = booking.cancellation_reason
    logger.info('Booking cancellation notification', extra={'notification': payload})


def send_session_reminder(booking: Booking) -> None:
    logger.info('Session reminder notification', extra={'notification': _describe(booking)})


def notify_safely(send, booking: Booking) -> None:
    try:
        send(booking)
    except Exception:
        logger.exception('Failed to send %s for booking %s', getattr(send, '__name__', 'notification'), booking.id)
