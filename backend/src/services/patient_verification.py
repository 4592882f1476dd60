"""
Patient identity verification strategies.

Before a LINE account is linked to a patient record, the caller must prove
they know something about the patient that is printed on, or known alongside,
the registration card. Two strategies exist:

- ``name``: patient number + full name, compared whitespace-insensitively.
  A missing record and a wrong name produce the same error so the endpoint
  cannot be used to probe which patient numbers exist.
- ``birth_date``: patient number + date of birth, compared on digits only.
  A missing record is reported as "not found" so the caller can continue to
  new registration; a wrong birth date is a hard failure.

The active strategy is chosen by PATIENT_VERIFICATION_STRATEGY.
"""

import logging
from typing import Dict, Optional, Type

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.config import PATIENT_VERIFICATION_STRATEGY
from models import Patient
from utils.patient_validators import normalize_birth_date, normalize_name

logger = logging.getLogger(__name__)

IDENTITY_MISMATCH_MESSAGE = "診察券番号または氏名が正しくありません。"
BIRTH_DATE_MISMATCH_MESSAGE = "診察券番号または生年月日が正しくありません。"


class PatientVerifier:
    """Base class for verification strategies."""

    strategy: str = ""

    def verify(
        self,
        db: Session,
        patient_id: str,
        name: Optional[str] = None,
        birth_date: Optional[str] = None,
    ) -> Optional[Patient]:
        """
        Look up a patient and check the claimed details against it.

        Args:
            db: Database session
            patient_id: Normalized patient number
            name: Claimed full name
            birth_date: Claimed birth date

        Returns:
            The matching patient, or None when the strategy reports a
            missing record as "not found"

        Raises:
            HTTPException: 400 if the details do not match
        """
        patient = db.get(Patient, patient_id)
        if patient is None:
            self.handle_missing(patient_id)
            return None

        self.check(patient, name, birth_date)
        return patient

    def handle_missing(self, patient_id: str) -> None:
        """Called when no record exists for the patient number."""
        raise NotImplementedError

    def check(self, patient: Patient, name: Optional[str], birth_date: Optional[str]) -> None:
        """Raise if the claimed details do not match the stored record."""
        raise NotImplementedError


class NameVerifier(PatientVerifier):
    """Patient number + name verification."""

    strategy = "name"

    def handle_missing(self, patient_id: str) -> None:
        logger.info(f"Name verification failed: no patient {patient_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=IDENTITY_MISMATCH_MESSAGE
        )

    def check(self, patient: Patient, name: Optional[str], birth_date: Optional[str]) -> None:
        if normalize_name(name) != normalize_name(patient.name):
            logger.info(f"Name verification failed for patient {patient.patient_id}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=IDENTITY_MISMATCH_MESSAGE
            )


class BirthDateVerifier(PatientVerifier):
    """Patient number + birth date verification."""

    strategy = "birth_date"

    def handle_missing(self, patient_id: str) -> None:
        # Unknown numbers continue to self-registration
        return None

    def check(self, patient: Patient, name: Optional[str], birth_date: Optional[str]) -> None:
        stored = normalize_birth_date(patient.birth_date)
        if not stored or normalize_birth_date(birth_date) != stored:
            logger.info(f"Birth date verification failed for patient {patient.patient_id}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=BIRTH_DATE_MISMATCH_MESSAGE
            )


_VERIFIERS: Dict[str, Type[PatientVerifier]] = {
    NameVerifier.strategy: NameVerifier,
    BirthDateVerifier.strategy: BirthDateVerifier,
}


def get_patient_verifier(strategy: Optional[str] = None) -> PatientVerifier:
    """
    Get the verifier for a strategy name.

    Args:
        strategy: "name" or "birth_date" (defaults to PATIENT_VERIFICATION_STRATEGY)

    Raises:
        ValueError: If the strategy is unknown
    """
    key = strategy or PATIENT_VERIFICATION_STRATEGY
    verifier_class = _VERIFIERS.get(key)
    if verifier_class is None:
        raise ValueError(f"Unknown patient verification strategy: {key}")
    return verifier_class()
