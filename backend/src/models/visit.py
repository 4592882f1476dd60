"""
Visit model representing one check-in on one clinic day.

Visits make up the day's reception queue. They are created active by a
patient self check-in or a staff proxy check-in, move freely between active,
paid and cancelled under staff control, and are never deleted.
"""

from sqlalchemy import Boolean, Date, Integer, String, TIMESTAMP, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date as date_type, datetime
from typing import Optional

from core.database import Base

# Partial index predicate: patient self check-ins that are still waiting
_ACTIVE_SELF_CHECK_IN = text("status = 'active' AND created_by = 'patient'")


class Visit(Base):
    """
    Visit entity: one patient's check-in on one clinic day.

    The same-day rule (one active visit per patient per day) is enforced for
    patient self check-ins by the partial unique index below, so two concurrent
    check-ins cannot both commit. Staff proxy check-ins are deliberately exempt.
    """

    __tablename__ = "visits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Generated visit identifier."""

    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    """Clinic calendar day (JST) the visit belongs to."""

    patient_id: Mapped[str] = mapped_column(String(32), nullable=False)
    """Patient number. Not a foreign key: proxy check-ins may name unregistered numbers."""

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    """Patient name copied at check-in; corrected together with the patient record."""

    line_user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """LINE user id of the patient at check-in time, if linked."""

    owner_subject_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Session subject that created the visit (patient self check-ins)."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default='active')
    """One of 'active', 'paid', 'cancelled'."""

    arrived_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Server timestamp of check-in."""

    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Server timestamp of the transition to paid; cleared when reverted to active."""

    created_by: Mapped[str] = mapped_column(String(20), nullable=False)
    """'patient' for self check-in, 'staff' for proxy check-in."""

    closed_by: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """Set to 'staff' when cancelled by the end-of-day bulk close."""

    receipt_status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """Whether staff registered this visit in the receipt computer. Independent of status."""

    __table_args__ = (
        CheckConstraint("status IN ('active', 'paid', 'cancelled')", name='check_visit_status'),
        CheckConstraint("created_by IN ('patient', 'staff')", name='check_visit_created_by'),
        Index('idx_visits_date_arrived', 'date', 'arrived_at'),
        Index('idx_visits_patient_status', 'patient_id', 'status'),
        Index(
            'uq_visits_active_self_check_in',
            'patient_id', 'date',
            unique=True,
            postgresql_where=_ACTIVE_SELF_CHECK_IN,
            sqlite_where=_ACTIVE_SELF_CHECK_IN,
        ),
    )

    def __repr__(self) -> str:
        return f"Visit(id={self.id}, patient_id='{self.patient_id}', date={self.date}, status='{self.status}')"
