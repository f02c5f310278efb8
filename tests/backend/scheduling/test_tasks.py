from datetime import date, timedelta

import pytest

from backend.models.booking import Booking
from backend.scheduling.tasks import mark_no_shows, send_session_reminders

TODAY = date(2026, 3, 18)


@pytest.fixture
def participants(make_user, make_therapist):
    return make_user(role='patient'), make_therapist()


def _status(db, booking_id: int) -> str:
    db.expire_all()
    return db.get(Booking, booking_id).status


def test_mark_no_shows_moves_past_active_bookings(db, make_booking, participants) -> None:
    patient, therapist = participants
    two_days_ago = make_booking(patient, therapist, TODAY - timedelta(days=2), '10:00', status='pending')
    yesterday = make_booking(patient, therapist, TODAY - timedelta(days=1), '11:00', status='confirmed')

    updated = mark_no_shows(db, today=TODAY)

    assert updated == 2
    assert _status(db, two_days_ago.id) == 'no-show'
    assert _status(db, yesterday.id) == 'no-show'


def test_mark_no_shows_leaves_today_and_future_bookings(db, make_booking, participants) -> None:
    patient, therapist = participants
    today_booking = make_booking(patient, therapist, TODAY, '10:00', status='confirmed')
    future_booking = make_booking(patient, therapist, TODAY + timedelta(days=1), '10:00', status='pending')

    assert mark_no_shows(db, today=TODAY) == 0
    assert _status(db, today_booking.id) == 'confirmed'
    assert _status(db, future_booking.id) == 'pending'


@pytest.mark.parametrize('status', ['cancelled', 'completed'])
def test_mark_no_shows_skips_finished_bookings(db, make_booking, participants, status: str) -> None:
    patient, therapist = participants
    booking = make_booking(patient, therapist, TODAY - timedelta(days=3), '10:00', status=status)

    assert mark_no_shows(db, today=TODAY) == 0
    assert _status(db, booking.id) == status


def test_mark_no_shows_second_pass_does_nothing(db, make_booking, participants) -> None:
    patient, therapist = participants
    booking = make_booking(patient, therapist, TODAY - timedelta(days=5), '10:00', status='pending')

    assert mark_no_shows(db, today=TODAY) == 1
    assert mark_no_shows(db, today=TODAY) == 0
    assert _status(db, booking.id) == 'no-show'


def test_send_session_reminders_notifies_tomorrow_once(db, make_booking, participants) -> None:
    patient, therapist = participants
    tomorrow = TODAY + timedelta(days=1)
    first = make_booking(patient, therapist, tomorrow, '09:00', status='pending')
    second = make_booking(patient, therapist, tomorrow, '13:00', status='confirmed')
    make_booking(patient, therapist, tomorrow, '15:00', status='cancelled')
    make_booking(patient, therapist, TODAY + timedelta(days=2), '09:00', status='confirmed')

    sent: list[int] = []

    assert send_session_reminders(db, today=TODAY, send=lambda booking: sent.append(booking.id)) == 2
    assert sent == [first.id, second.id]

    assert send_session_reminders(db, today=TODAY, send=lambda booking: sent.append(booking.id)) == 0
    assert sent == [first.id, second.id]


def test_send_session_reminders_continues_after_failure(db, make_booking, participants) -> None:
    patient, therapist = participants
    tomorrow = TODAY + timedelta(days=1)
    failing = make_booking(patient, therapist, tomorrow, '09:00')
    working = make_booking(patient, therapist, tomorrow, '11:00')

    def send(booking: Booking) -> None:
        if booking.id == failing.id:
            raise RuntimeError('mail relay down')

    assert send_session_reminders(db, today=TODAY, send=send) == 1

    db.expire_all()
    assert db.get(Booking, failing.id).reminder_sent is False
    assert db.get(Booking, working.id).reminder_sent is True


def test_send_session_reminders_default_notifier_logs(db, make_booking, participants, caplog) -> None:
    patient, therapist = participants
    make_booking(patient, therapist, TODAY + timedelta(days=1), '09:00')

    with caplog.at_level('INFO', logger='backend.services.notifications'):
        assert send_session_reminders(db, today=TODAY) == 1

    assert 'Session reminder notification' in caplog.text
