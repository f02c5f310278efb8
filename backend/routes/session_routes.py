import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_roles
from backend.auth.permissions import get_therapist_for_user, is_assigned_therapist, is_participant
from backend.core import config
from backend.core.schemas import ApiModel, LocalDateTime, PaginationResponse, paginate
from backend.database import database_unavailable, get_db
from backend.models.booking import Booking
from backend.models.therapy_session import TherapySession
from backend.models.user import User
from backend.scheduling.lifecycle import change_status
from backend.services.ratings import recalculate_rating

router = APIRouter(tags=['sessions'])

logger = logging.getLogger(__name__)

MAX_FEEDBACK_LENGTH = 1000


class CreateSessionRequest(ApiModel):
    booking_id: int
    start_time: LocalDateTime | None = None
    therapist_notes: str | None = None
    treatment_plan: str | None = None
    goals: list[str] | None = None


class UpdateSessionRequest(ApiModel):
    therapist_notes: str | None = None
    treatment_plan: str | None = None
    goals: list[str] | None = None
    mood_rating: int | None = Field(default=None, ge=1, le=10)
    next_session_date: LocalDateTime | None = None


class CompleteSessionRequest(ApiModel):
    end_time: LocalDateTime | None = None


class PatientFeedbackRequest(ApiModel):
    patient_rating: int = Field(ge=1, le=5)
    patient_feedback: str | None = Field(default=None, max_length=MAX_FEEDBACK_LENGTH)
    patient_notes: str | None = Field(default=None, max_length=MAX_FEEDBACK_LENGTH)


class SessionResponse(ApiModel):
    id: int
    booking_id: int
    patient_id: int
    therapist_id: int
    start_time: datetime
    end_time: datetime | None = None
    actual_duration: int | None = None
    therapist_notes: str | None = None
    patient_notes: str | None = None
    treatment_plan: str | None = None
    goals: list[str]
    mood_rating: int | None = None
    patient_rating: int | None = None
    patient_feedback: str | None = None
    is_completed: bool
    next_session_date: datetime | None = None


class SessionListResponse(ApiModel):
    sessions: list[SessionResponse]
    pagination: PaginationResponse


def get_session_or_404(db: Session, session_id: int) -> TherapySession:
    session = db.get(TherapySession, session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Session not found',
        )
    return session


def ensure_assigned_therapist(db: Session, user: User, therapist_id: int, detail: str) -> None:
    if not is_assigned_therapist(db, user, therapist_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


@router.post('', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    data: CreateSessionRequest,
    current_user: User = Depends(require_roles('therapist', 'admin')),
    db: Session = Depends(get_db),
):
    try:
        booking = db.get(Booking, data.booking_id)
        if booking is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Booking not found',
            )

        ensure_assigned_therapist(
            db,
            current_user,
            booking.therapist_id,
            'Only the assigned therapist can create a session',
        )

        if booking.status != 'confirmed':
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Booking must be confirmed to create a session',
            )

        if db.query(TherapySession).filter(TherapySession.booking_id == booking.id).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Session already exists for this booking',
            )

        session = TherapySession(
            booking_id=booking.id,
            patient_id=booking.patient_id,
            therapist_id=booking.therapist_id,
            start_time=data.start_time or datetime.now(),
            therapist_notes=data.therapist_notes,
            treatment_plan=data.treatment_plan,
            goals=data.goals or [],
        )
        db.add(session)
        change_status(booking, 'completed', current_user.id)
        db.commit()
        db.refresh(session)

        logger.info('Session %s created for booking %s', session.id, booking.id)
        return session
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Session already exists for this booking',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('', response_model=SessionListResponse)
def list_my_sessions(
    is_completed: bool | None = Query(default=None, alias='isCompleted'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(TherapySession)

        if current_user.role == 'patient':
            query = query.filter(TherapySession.patient_id == current_user.id)
        elif current_user.role == 'therapist':
            therapist = get_therapist_for_user(db, current_user)
            if therapist is None:
                return SessionListResponse(sessions=[], pagination=paginate(1, limit, 0))
            query = query.filter(TherapySession.therapist_id == therapist.id)

        if is_completed is not None:
            query = query.filter(TherapySession.is_completed.is_(is_completed))

        total = query.count()
        sessions = query.order_by(TherapySession.start_time.desc()).offset((page - 1) * limit).limit(limit).all()

        return SessionListResponse(
            sessions=[SessionResponse.model_validate(session) for session in sessions],
            pagination=paginate(page, limit, total),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{session_id}', response_model=SessionResponse)
def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        session = get_session_or_404(db, session_id)
        if not is_participant(db, current_user, session.patient_id, session.therapist_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Not authorized to view this session',
            )
        return session
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{session_id}', response_model=SessionResponse)
def update_session(
    session_id: int,
    data: UpdateSessionRequest,
    current_user: User = Depends(require_roles('therapist', 'admin')),
    db: Session = Depends(get_db),
):
    try:
        session = get_session_or_404(db, session_id)
        ensure_assigned_therapist(
            db,
            current_user,
            session.therapist_id,
            'Only the assigned therapist can update session notes',
        )

        for field_name, value in data.model_dump(exclude_unset=True).items():
            setattr(session, field_name, value)

        db.commit()
        db.refresh(session)
        return session
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{session_id}/complete', response_model=SessionResponse)
def complete_session(
    session_id: int,
    data: CompleteSessionRequest | None = None,
    current_user: User = Depends(require_roles('therapist', 'admin')),
    db: Session = Depends(get_db),
):
    try:
        session = get_session_or_404(db, session_id)
        ensure_assigned_therapist(
            db,
            current_user,
            session.therapist_id,
            'Only the assigned therapist can complete a session',
        )

        if session.is_completed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Session is already completed',
            )

        end_time = (data.end_time if data else None) or datetime.now()
        if end_time < session.start_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Session cannot end before it starts',
            )

        session.end_time = end_time
        session.actual_duration = round((end_time - session.start_time).total_seconds() / 60)
        session.is_completed = True
        db.commit()
        db.refresh(session)

        logger.info('Session %s completed after %s minutes', session.id, session.actual_duration)
        return session
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{session_id}/feedback', response_model=SessionResponse)
def add_patient_feedback(
    session_id: int,
    data: PatientFeedbackRequest,
    current_user: User = Depends(require_roles('patient')),
    db: Session = Depends(get_db),
):
    try:
        session = get_session_or_404(db, session_id)

        if session.patient_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the patient can add feedback',
            )

        if not session.is_completed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Session must be completed before adding feedback',
            )

        session.patient_rating = data.patient_rating
        session.patient_feedback = data.patient_feedback
        if data.patient_notes:
            session.patient_notes = data.patient_notes
        db.flush()

        recalculate_rating(db, session.therapist_id)
        db.commit()
        db.refresh(session)
        return session
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
