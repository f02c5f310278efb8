"""Therapist model definitions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.user import User
from backend.scheduling.availability import default_weekly_availability


class Therapist(Base):
    """Represents a therapist profile with its weekly working schedule."""
    __tablename__ = "therapists"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    license_number = Column(String, unique=True, nullable=False)
    specialization = Column(JSON, nullable=False, default=list)
    bio = Column(Text)
    years_of_experience = Column(Integer)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    availability = Column(JSON, nullable=False, default=default_weekly_availability)
    is_verified = Column(Boolean, nullable=False, default=False)
    rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    profile_image = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship(User, lazy="joined")
