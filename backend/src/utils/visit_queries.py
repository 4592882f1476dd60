"""
Utility functions for consistent visit queries.

The day's queue is always read in arrival order, and the same-day check-in
rule is always tested the same way, whether from the visit service, the
queue hub or the public status aggregator.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from core.constants import VISIT_STATUS_ACTIVE
from models import Visit


def get_visits_for_date(db: Session, visit_date: date) -> List[Visit]:
    """
    Get every visit of a clinic day ordered by arrival (oldest first).

    Args:
        db: Database session
        visit_date: Clinic calendar day

    Returns:
        Visits in arrivedAt ascending order; ties are broken by id
    """
    return db.query(Visit).filter(
        Visit.date == visit_date
    ).order_by(Visit.arrived_at, Visit.id).all()


def find_active_visit(
    db: Session,
    patient_id: str,
    visit_date: date,
    created_by: Optional[str] = None,
    exclude_visit_id: Optional[int] = None,
) -> Optional[Visit]:
    """
    Find an active visit for a patient on a day.

    Args:
        db: Database session
        patient_id: Patient number
        visit_date: Clinic calendar day
        created_by: Restrict to visits of this origin (None for any)
        exclude_visit_id: Visit to ignore (the one being changed)

    Returns:
        The first matching active visit, or None
    """
    query = db.query(Visit).filter(
        Visit.patient_id == patient_id,
        Visit.date == visit_date,
        Visit.status == VISIT_STATUS_ACTIVE,
    )
    if created_by is not None:
        query = query.filter(Visit.created_by == created_by)
    if exclude_visit_id is not None:
        query = query.filter(Visit.id != exclude_visit_id)
    return query.first()
