import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field, field_validator, model_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_roles
from backend.auth.permissions import get_therapist_for_user, is_participant
from backend.core import config
from backend.core.schemas import ApiModel, PaginationResponse, paginate
from backend.database import database_unavailable, get_db
from backend.models.booking import Booking
from backend.models.therapist import Therapist
from backend.models.user import User
from backend.scheduling.availability import TIME_OF_DAY_PATTERN, resolve_availability
from backend.scheduling.conflicts import find_conflicting_booking
from backend.scheduling.lifecycle import BookingError, cancel_booking, change_status
from backend.scheduling.slots import fits_working_hours
from backend.services import notifications

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60
MIN_DURATION_MINUTES = 30
MAX_DURATION_MINUTES = 180
MAX_NOTES_LENGTH = 1000
MAX_CANCELLATION_REASON_LENGTH = 500
SLOT_TAKEN_DETAIL = 'Time slot is already booked'

BookingStatus = Literal['pending', 'confirmed', 'cancelled', 'completed', 'no-show']
SessionType = Literal['in-person', 'video', 'phone']


class CreateBookingRequest(ApiModel):
    therapist_id: int
    session_date: date
    session_time: str
    duration: int = Field(default=DEFAULT_DURATION_MINUTES, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    session_type: SessionType = 'video'
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)

    @field_validator('session_time')
    @classmethod
    def validate_session_time(cls, value: str) -> str:
        normalized = value.strip()
        if not TIME_OF_DAY_PATTERN.match(normalized):
            raise ValueError('Session time must use the HH:MM format.')
        return normalized


class UpdateBookingRequest(ApiModel):
    status: BookingStatus | None = None
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    meeting_link: str | None = None
    cancellation_reason: str | None = Field(default=None, max_length=MAX_CANCELLATION_REASON_LENGTH)

    @field_validator('meeting_link')
    @classmethod
    def validate_meeting_link(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith(('http://', 'https://')):
            raise ValueError('Meeting link must be a URL.')
        return value

    @model_validator(mode='after')
    def check_cancellation_reason(self) -> 'UpdateBookingRequest':
        if self.cancellation_reason is not None and self.status != 'cancelled':
            raise ValueError('Cancellation reason is only accepted when cancelling a booking.')
        return self


class CancelBookingRequest(ApiModel):
    cancellation_reason: str | None = Field(default=None, max_length=MAX_CANCELLATION_REASON_LENGTH)


class BookingResponse(ApiModel):
    id: int
    patient_id: int
    therapist_id: int
    session_date: date
    session_time: str
    duration: int
    status: str
    session_type: str
    meeting_link: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: int | None = None
    total_amount: float
    payment_status: str
    reminder_sent: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookingListResponse(ApiModel):
    bookings: list[BookingResponse]
    pagination: PaginationResponse


def calculate_total_amount(hourly_rate, duration: int) -> Decimal:
    amount = Decimal(str(hourly_rate)) * duration / 60
    return amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def get_booking_for_participant(db: Session, booking_id: int, user: User, action: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Booking not found',
        )

    if not is_participant(db, user, booking.patient_id, booking.therapist_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'Not authorized to {action} this booking',
        )
    return booking


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    current_user: User = Depends(require_roles('patient', 'admin')),
    db: Session = Depends(get_db),
):
    try:
        therapist = db.get(Therapist, data.therapist_id)
        if therapist is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Therapist not found',
            )

        if not therapist.is_verified:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Therapist is not verified',
            )

        if data.session_date < date.today():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Bookings must be scheduled for today or later',
            )

        resolved = resolve_availability(therapist.availability, data.session_date)
        if not resolved.available:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Therapist is not available on this day',
            )

        if not fits_working_hours(resolved.start, resolved.end, data.session_time, data.duration):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Session must fall within working hours ({resolved.start}-{resolved.end})',
            )

        conflicting_booking = find_conflicting_booking(
            db,
            therapist.id,
            data.session_date,
            data.session_time,
            data.duration,
        )
        if conflicting_booking:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=SLOT_TAKEN_DETAIL,
            )

        booking = Booking(
            patient_id=current_user.id,
            therapist_id=therapist.id,
            session_date=data.session_date,
            session_time=data.session_time,
            duration=data.duration,
            session_type=data.session_type,
            notes=data.notes,
            total_amount=calculate_total_amount(therapist.hourly_rate, data.duration),
            status='pending',
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
    except IntegrityError as exc:
        # A concurrent request claimed the same start time between check and insert.
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=SLOT_TAKEN_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info(
        'Booking %s created for therapist %s on %s at %s',
        booking.id,
        booking.therapist_id,
        booking.session_date,
        booking.session_time,
    )
    notifications.notify_safely(notifications.send_booking_confirmation, booking)
    return booking


@router.get('', response_model=BookingListResponse)
def list_my_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias='status'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Booking)

        if current_user.role == 'patient':
            query = query.filter(Booking.patient_id == current_user.id)
        elif current_user.role == 'therapist':
            therapist = get_therapist_for_user(db, current_user)
            if therapist is None:
                return BookingListResponse(bookings=[], pagination=paginate(1, limit, 0))
            query = query.filter(Booking.therapist_id == therapist.id)

        if status_filter:
            query = query.filter(Booking.status == status_filter)

        total = query.count()
        bookings = query.order_by(
            Booking.session_date.desc(),
            Booking.session_time.desc(),
        ).offset((page - 1) * limit).limit(limit).all()

        return BookingListResponse(
            bookings=[BookingResponse.model_validate(booking) for booking in bookings],
            pagination=paginate(page, limit, total),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return get_booking_for_participant(db, booking_id, current_user, 'view')
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{booking_id}', response_model=BookingResponse)
def update_booking(
    booking_id: int,
    data: UpdateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = get_booking_for_participant(db, booking_id, current_user, 'update')

        status_changed = False
        if data.status is not None:
            status_changed = change_status(booking, data.status, current_user.id, data.cancellation_reason)

        if data.notes is not None:
            booking.notes = data.notes
        if data.meeting_link is not None:
            booking.meeting_link = data.meeting_link

        db.commit()
        db.refresh(booking)
    except BookingError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    if status_changed:
        notifications.notify_safely(notifications.send_booking_status_update, booking)
    return booking


@router.delete('/{booking_id}', response_model=BookingResponse)
def cancel_my_booking(
    booking_id: int,
    data: CancelBookingRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    reason = data.cancellation_reason if data else None

    try:
        booking = get_booking_for_participant(db, booking_id, current_user, 'cancel')
        cancel_booking(booking, current_user.id, reason)
        db.commit()
        db.refresh(booking)
    except BookingError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    notifications.notify_safely(notifications.send_booking_cancellation, booking)
    return booking
