from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.models.therapist import Therapist
from backend.models.therapy_session import TherapySession


def recalculate_rating(db: Session, therapist_id: int) -> Therapist:
    """Refresh a therapist's mean rating and review count from rated sessions."""
    average, count = db.query(
        func.avg(TherapySession.patient_rating),
        func.count(TherapySession.id),
    ).filter(
        TherapySession.therapist_id == therapist_id,
        TherapySession.patient_rating.is_not(None),
    ).one()

    therapist = db.get(Therapist, therapist_id)
    therapist.rating = Decimal(str(round(float(average or 0), 2)))
    therapist.total_reviews = count
    return therapist
