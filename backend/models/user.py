"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from backend.database import Base

USER_ROLES = ('patient', 'therapist', 'admin')


class User(Base):
    """Represents a patient, therapist or administrator account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone = Column(String(20))
    role = Column(String, nullable=False, default='patient')  # patient/therapist/admin
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'
