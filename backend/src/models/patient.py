"""
Patient model representing clinic registrants.

Each patient is keyed by the clinic-issued patient number printed on their
registration card. A patient record can exist unlinked (created by a staff
import) and is later linked to exactly one LINE account through the LIFF app.
"""

from sqlalchemy import String, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional

from core.database import Base


class Patient(Base):
    """
    Patient entity keyed by the clinic patient number.

    Patients are never deleted by the application. They are created either by
    a patient's first link attempt (self-registration) or by staff import, and
    are mutated by linking and by staff name correction.
    """

    __tablename__ = "patients"

    patient_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    """Clinic-issued patient number (診察券番号). Issued externally, never generated here."""

    name: Mapped[str] = mapped_column(String(100))
    """Full name (kanji) as registered at the clinic."""

    kana: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Phonetic (kana) reading of the name, if known."""

    birth_date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    """Birth date as YYYY-MM-DD. Only used by birth-date verification."""

    line_user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """LINE user id linked to this patient. At most one per patient, and one patient per LINE user."""

    owner_subject_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Session subject that created or last claimed this record."""

    linked_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Server timestamp of the last successful link."""

    created_by_type: Mapped[str] = mapped_column(String(20), nullable=False, default='staff')
    """Source of creation: 'patient' (self-registration) or 'staff' (import, correction)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the record was first created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp of the last modification."""

    __table_args__ = (
        Index('uq_patients_line_user_id', 'line_user_id', unique=True),
    )

    def __repr__(self) -> str:
        return f"Patient(patient_id='{self.patient_id}', linked={self.line_user_id is not None})"
