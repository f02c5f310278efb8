import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import AfterValidator, Field, field_validator
from sqlalchemy import String, cast, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_roles
from backend.core import config
from backend.core.schemas import ApiModel, PaginationResponse, paginate
from backend.database import database_unavailable, get_db
from backend.models.therapist import Therapist
from backend.models.therapy_session import TherapySession
from backend.models.user import User
from backend.scheduling.availability import (
    default_weekly_availability,
    resolve_availability,
    validate_weekly_availability,
)
from backend.scheduling.conflicts import get_active_bookings
from backend.scheduling.slots import generate_available_slots

router = APIRouter(tags=['therapists'])

logger = logging.getLogger(__name__)

MAX_BIO_LENGTH = 2000
UNAVAILABLE_DAY_MESSAGE = 'Therapist is not available on this day'


class DayAvailability(ApiModel):
    start: str
    end: str
    available: bool


class TherapistUserResponse(ApiModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None = None


class TherapistResponse(ApiModel):
    id: int
    user: TherapistUserResponse
    license_number: str
    specialization: list[str]
    bio: str | None = None
    years_of_experience: int | None = None
    hourly_rate: float
    availability: dict[str, DayAvailability]
    is_verified: bool
    rating: float
    total_reviews: int
    profile_image: str | None = None


class TherapistListResponse(ApiModel):
    therapists: list[TherapistResponse]
    pagination: PaginationResponse


WeeklyAvailabilityInput = Annotated[dict, AfterValidator(validate_weekly_availability)]


class CreateTherapistRequest(ApiModel):
    user_id: int
    license_number: str | None = None
    specialization: list[str] = Field(default_factory=list)
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)
    years_of_experience: int | None = Field(default=None, ge=0)
    hourly_rate: Decimal = Field(default=Decimal(str(config.DEFAULT_HOURLY_RATE)), ge=0)
    availability: WeeklyAvailabilityInput | None = None


class UpdateTherapistProfileRequest(ApiModel):
    specialization: list[str] | None = None
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)
    years_of_experience: int | None = Field(default=None, ge=0)
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    availability: WeeklyAvailabilityInput | None = None
    profile_image: str | None = None

    @field_validator('profile_image')
    @classmethod
    def validate_profile_image(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith(('http://', 'https://')):
            raise ValueError('Profile image must be a URL.')
        return value


class WorkingHoursResponse(ApiModel):
    start: str
    end: str


class AvailabilityResponse(ApiModel):
    available: bool
    date: date
    day_of_week: str
    available_slots: list[str] | None = None
    working_hours: WorkingHoursResponse | None = None
    message: str | None = None


class ReviewResponse(ApiModel):
    id: int
    patient_first_name: str
    patient_last_name: str
    patient_rating: int
    patient_feedback: str | None = None
    start_time: datetime
    created_at: datetime | None = None


class TherapistRatingResponse(ApiModel):
    id: int
    rating: float
    total_reviews: int


class ReviewListResponse(ApiModel):
    therapist: TherapistRatingResponse
    reviews: list[ReviewResponse]
    pagination: PaginationResponse


def get_therapist_or_404(db: Session, therapist_id: int) -> Therapist:
    therapist = db.get(Therapist, therapist_id)
    if therapist is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Therapist not found',
        )
    return therapist


@router.get('', response_model=TherapistListResponse)
def list_therapists(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    specialization: str | None = Query(default=None),
    min_rating: float | None = Query(default=None, ge=0, le=5, alias='minRating'),
    max_rate: float | None = Query(default=None, ge=0, alias='maxRate'),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Therapist).join(User, Therapist.user_id == User.id).filter(
            Therapist.is_verified.is_(True),
        )

        if specialization:
            # JSON lists serialize as ["a", "b"] on every supported backend.
            query = query.filter(cast(Therapist.specialization, String).like(f'%"{specialization}"%'))
        if min_rating is not None:
            query = query.filter(Therapist.rating >= min_rating)
        if max_rate is not None:
            query = query.filter(Therapist.hourly_rate <= max_rate)
        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern)))

        total = query.count()
        therapists = query.order_by(
            Therapist.rating.desc(),
            Therapist.total_reviews.desc(),
            Therapist.id.asc(),
        ).offset((page - 1) * limit).limit(limit).all()

        return TherapistListResponse(
            therapists=[TherapistResponse.model_validate(therapist) for therapist in therapists],
            pagination=paginate(page, limit, total),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=TherapistResponse, status_code=status.HTTP_201_CREATED)
def create_therapist(
    data: CreateTherapistRequest,
    current_user: User = Depends(require_roles('admin')),
    db: Session = Depends(get_db),
):
    try:
        user = db.get(User, data.user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='User not found',
            )

        if db.query(Therapist).filter(Therapist.user_id == user.id).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='User already has a therapist profile',
            )

        therapist = Therapist(
            user_id=user.id,
            license_number=data.license_number or f'LIC-{user.id:08d}',
            specialization=data.specialization,
            bio=data.bio or '',
            years_of_experience=data.years_of_experience,
            hourly_rate=data.hourly_rate,
            availability={**default_weekly_availability(), **(data.availability or {})},
        )
        user.role = 'therapist'
        db.add(therapist)
        db.commit()
        db.refresh(therapist)

        logger.info('Therapist profile %s created for user %s by %s', therapist.id, user.id, current_user.id)
        return therapist
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='License number is already registered',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/profile', response_model=TherapistResponse)
def update_therapist_profile(
    data: UpdateTherapistProfileRequest,
    current_user: User = Depends(require_roles('therapist')),
    db: Session = Depends(get_db),
):
    try:
        therapist = db.query(Therapist).filter(Therapist.user_id == current_user.id).first()
        if therapist is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Therapist profile not found',
            )

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if 'availability' in updates:
            # Days left out of the submission keep their current hours.
            availability = dict(therapist.availability or {})
            availability.update(updates['availability'])
            updates['availability'] = availability

        for field_name, value in updates.items():
            setattr(therapist, field_name, value)

        db.commit()
        db.refresh(therapist)
        return therapist
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{therapist_id}/verify', response_model=TherapistResponse)
def verify_therapist(
    therapist_id: int,
    current_user: User = Depends(require_roles('admin')),
    db: Session = Depends(get_db),
):
    try:
        therapist = get_therapist_or_404(db, therapist_id)
        therapist.is_verified = True
        db.commit()
        db.refresh(therapist)

        logger.info('Therapist %s verified by %s', therapist.id, current_user.id)
        return therapist
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{therapist_id}', response_model=TherapistResponse)
def get_therapist(therapist_id: int, db: Session = Depends(get_db)):
    try:
        return get_therapist_or_404(db, therapist_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get(
    '/{therapist_id}/availability',
    response_model=AvailabilityResponse,
    response_model_exclude_none=True,
)
def get_therapist_availability(
    therapist_id: int,
    date: date = Query(...),
    db: Session = Depends(get_db),
):
    try:
        therapist = get_therapist_or_404(db, therapist_id)
        resolved = resolve_availability(therapist.availability, date)

        if not resolved.available:
            return AvailabilityResponse(
                available=False,
                date=date,
                day_of_week=resolved.day_of_week.value,
                message=UNAVAILABLE_DAY_MESSAGE,
            )

        bookings = get_active_bookings(db, therapist.id, date)
        available_slots = generate_available_slots(
            resolved.start,
            resolved.end,
            [(booking.session_time, booking.duration) for booking in bookings],
        )

        return AvailabilityResponse(
            available=True,
            date=date,
            day_of_week=resolved.day_of_week.value,
            available_slots=available_slots,
            working_hours=WorkingHoursResponse(start=resolved.start, end=resolved.end),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{therapist_id}/reviews', response_model=ReviewListResponse)
def list_therapist_reviews(
    therapist_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    try:
        therapist = get_therapist_or_404(db, therapist_id)

        query = db.query(TherapySession).filter(
            TherapySession.therapist_id == therapist.id,
            TherapySession.patient_rating.is_not(None),
        )
        total = query.count()
        sessions = query.order_by(
            TherapySession.created_at.desc(),
            TherapySession.id.desc(),
        ).offset((page - 1) * limit).limit(limit).all()

        return ReviewListResponse(
            therapist=TherapistRatingResponse(
                id=therapist.id,
                rating=therapist.rating,
                total_reviews=therapist.total_reviews,
            ),
            reviews=[
                ReviewResponse(
                    id=session.id,
                    patient_first_name=session.patient.first_name,
                    patient_last_name=session.patient.last_name,
                    patient_rating=session.patient_rating,
                    patient_feedback=session.patient_feedback,
                    start_time=session.start_time,
                    created_at=session.created_at,
                )
                for session in sessions
            ],
            pagination=paginate(page, limit, total),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

