"""Booking model definitions."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text

from backend.database import Base
from backend.models.therapist import Therapist
from backend.models.user import User

BOOKING_STATUSES = ('pending', 'confirmed', 'cancelled', 'completed', 'no-show')
ACTIVE_BOOKING_STATUSES = ('pending', 'confirmed')
SESSION_TYPES = ('in-person', 'video', 'phone')
PAYMENT_STATUSES = ('pending', 'paid', 'refunded', 'failed')


class Booking(Base):
    """Represents a therapy appointment requested by a patient."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id", ondelete="CASCADE"), nullable=False, index=True)
    session_date = Column(Date, nullable=False)
    session_time = Column(String(5), nullable=False)  # HH:MM
    duration = Column(Integer, nullable=False, default=60)
    status = Column(String, nullable=False, default='pending', index=True)
    session_type = Column(String, nullable=False, default='video')
    meeting_link = Column(String)
    notes = Column(Text)
    cancellation_reason = Column(Text)
    cancelled_at = Column(DateTime)
    cancelled_by = Column(Integer, ForeignKey("users.id"))
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(String, nullable=False, default='pending')
    payment_id = Column(String)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship(User, foreign_keys=[patient_id], lazy="joined")
    therapist = relationship(Therapist, lazy="joined")

    __table_args__ = (
        Index('idx_bookings_date_time', 'session_date', 'session_time'),
        # At most one active booking may start at a given therapist/date/time.
        Index(
            'uq_bookings_active_start',
            'therapist_id',
            'session_date',
            'session_time',
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
    )
