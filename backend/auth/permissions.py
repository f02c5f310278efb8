from sqlalchemy.orm import Session

from backend.models.therapist import Therapist
from backend.models.user import User


def get_therapist_for_user(db: Session, user: User) -> Therapist | None:
    return db.query(Therapist).filter(Therapist.user_id == user.id).first()


def is_participant(db: Session, user: User, patient_id: int, therapist_id: int) -> bool:
    """Admins, the patient and the assigned therapist may see a booking or session."""
    if user.role == 'admin' or patient_id == user.id:
        return True

    therapist = get_therapist_for_user(db, user)
    return therapist is not None and therapist.id == therapist_id


def is_assigned_therapist(db: Session, user: User, therapist_id: int) -> bool:
    if user.role == 'admin':
        return True

    therapist = get_therapist_for_user(db, user)
    return therapist is not None and therapist.id == therapist_id
