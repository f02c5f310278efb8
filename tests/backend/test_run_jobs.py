from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from backend import run_jobs
from backend.models.booking import Booking


@pytest.fixture
def job_session(engine, monkeypatch: pytest.MonkeyPatch):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(run_jobs, 'SessionLocal', testing_session_local)
    monkeypatch.setattr(run_jobs, 'init_db', lambda: None)
    return testing_session_local


def test_run_jobs_marks_no_shows(db, job_session, make_user, make_therapist, make_booking, capsys) -> None:
    booking = make_booking(make_user(), make_therapist(), date(2026, 2, 2), '10:00', status='confirmed')

    exit_code = run_jobs.main(['no-shows', '--date', '2026-02-04'])

    db.expire_all()
    assert exit_code == 0
    assert capsys.readouterr().out.strip() == 'no-shows: 1'
    assert db.get(Booking, booking.id).status == 'no-show'


def test_run_jobs_sends_reminders(db, job_session, make_user, make_therapist, make_booking, capsys) -> None:
    booking = make_booking(make_user(), make_therapist(), date(2026, 2, 5), '10:00')

    exit_code = run_jobs.main(['reminders', '--date', '2026-02-04'])

    db.expire_all()
    assert exit_code == 0
    assert capsys.readouterr().out.strip() == 'reminders: 1'
    assert db.get(Booking, booking.id).reminder_sent is True


def test_run_jobs_rejects_unknown_job() -> None:
    with pytest.raises(SystemExit):
        run_jobs.main(['cleanup'])
