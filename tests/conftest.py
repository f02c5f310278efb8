import os
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from backend.database import Base  # noqa: E402
from backend.models.booking import Booking  # noqa: E402
from backend.models.therapist import Therapist  # noqa: E402
from backend.models.therapy_session import TherapySession  # noqa: E402,F401
from backend.models.user import User  # noqa: E402
from backend.scheduling.availability import default_weekly_availability  # noqa: E402


def _next_weekday(weekday: int, after: date | None = None) -> date:
    """First date strictly after ``after`` (default today) falling on ``weekday`` (Monday=0)."""
    current = (after or date.today()) + timedelta(days=1)
    while current.weekday() != weekday:
        current += timedelta(days=1)
    return current


@pytest.fixture
def next_weekday():
    return _next_weekday


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def _make_user(role: str = 'patient', email: str | None = None, first_name: str = 'Test', last_name: str = 'User'):
        counter['value'] += 1
        user = User(
            email=email or f'{role}{counter["value"]}@example.com',
            hashed_password='',
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_therapist(db, make_user):
    def _make_therapist(
        user: User | None = None,
        is_verified: bool = True,
        hourly_rate: str = '120.00',
        specialization: list[str] | None = None,
        availability: dict | None = None,
        rating: str = '0',
        total_reviews: int = 0,
    ):
        user = user or make_user(role='therapist')
        therapist = Therapist(
            user_id=user.id,
            license_number=f'LIC-{user.id:08d}',
            specialization=specialization or [],
            hourly_rate=Decimal(hourly_rate),
            availability=availability or default_weekly_availability(),
            is_verified=is_verified,
            rating=Decimal(rating),
            total_reviews=total_reviews,
        )
        db.add(therapist)
        db.commit()
        db.refresh(therapist)
        return therapist

    return _make_therapist


@pytest.fixture
def make_booking(db):
    def _make_booking(
        patient: User,
        therapist: Therapist,
        session_date: date,
        session_time: str = '10:00',
        duration: int = 60,
        status: str = 'pending',
        **extra,
    ):
        booking = Booking(
            patient_id=patient.id,
            therapist_id=therapist.id,
            session_date=session_date,
            session_time=session_time,
            duration=duration,
            status=status,
            total_amount=Decimal('120.00'),
            **extra,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make_booking
