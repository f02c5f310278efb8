"""Therapy session model definitions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Text, func
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.booking import Booking
from backend.models.user import User


class TherapySession(Base):
    """Notes and outcome of a session held for a confirmed booking."""
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime)
    actual_duration = Column(Integer)
    therapist_notes = Column(Text)
    patient_notes = Column(Text)
    treatment_plan = Column(Text)
    goals = Column(JSON, nullable=False, default=list)
    mood_rating = Column(Integer)
    patient_rating = Column(Integer)
    patient_feedback = Column(Text)
    is_completed = Column(Boolean, nullable=False, default=False)
    next_session_date = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship(Booking, lazy="joined")
    patient = relationship(User, foreign_keys=[patient_id], lazy="joined")
