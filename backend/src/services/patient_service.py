"""
Patient service for shared patient business logic.

This module contains the Patient Directory: lookups used by the LIFF app and
the staff dashboard, identity verification, linking a LINE account to a
patient number, staff name correction and bulk registration.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union, TYPE_CHECKING

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import (
    CREATED_BY_PATIENT,
    CREATED_BY_STAFF,
    IMPORT_BATCH_SIZE,
    VISIT_STATUS_ACTIVE,
)
from models import Patient, Visit
from services.patient_verification import PatientVerifier, get_patient_verifier
from services.visit_queue_hub import get_visit_queue_hub
from utils.datetime_utils import jst_now
from utils.patient_import import parse_patient_import
from utils.patient_validators import (
    normalize_patient_id,
    validate_birth_date_field,
    validate_patient_name,
)

if TYPE_CHECKING:
    from auth.dependencies import SessionContext

logger = logging.getLogger(__name__)

ALREADY_LINKED_MESSAGE = "この診察券番号は既に他のLINEアカウントと連携されています。"
IDENTITY_IN_USE_MESSAGE = "このLINEアカウントは既に別の診察券番号と連携されています。"
PATIENT_NOT_LINKED_MESSAGE = "診察券が連携されていません"


@dataclass
class ImportResult:
    """Outcome of a bulk patient import."""

    imported: int = 0
    skipped: int = 0
    skipped_lines: List[int] = field(default_factory=list)


class PatientService:
    """
    Service class for patient operations.

    Contains business logic for patient management that is shared
    across the LIFF and clinic API endpoints.
    """

    @staticmethod
    def get_by_line_user_id(db: Session, line_user_id: str) -> Optional[Patient]:
        """
        Find the patient linked to a LINE account.

        Args:
            db: Database session
            line_user_id: LINE user id from the session

        Returns:
            The linked Patient, or None
        """
        return db.query(Patient).filter(Patient.line_user_id == line_user_id).first()

    @staticmethod
    def get_by_patient_id(db: Session, patient_id: str) -> Optional[Patient]:
        """
        Find a patient by patient number.

        Args:
            db: Database session
            patient_id: Patient number as typed (full-width digits accepted)

        Returns:
            The Patient, or None
        """
        return db.get(Patient, normalize_patient_id(patient_id))

    @staticmethod
    def get_linked_patient(db: Session, session: "SessionContext") -> Patient:
        """
        Get the caller's linked patient.

        Raises:
            HTTPException: 404 if the caller's LINE account is not linked
        """
        patient = None
        if session.line_user_id:
            patient = PatientService.get_by_line_user_id(db, session.line_user_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=PATIENT_NOT_LINKED_MESSAGE
            )
        return patient

    @staticmethod
    def verify(
        db: Session,
        patient_id: str,
        name: Optional[str] = None,
        birth_date: Optional[str] = None,
        verifier: Optional[PatientVerifier] = None,
    ) -> Optional[Patient]:
        """
        Check a patient number against a claimed name or birth date.

        Args:
            db: Database session
            patient_id: Patient number as typed
            name: Claimed full name
            birth_date: Claimed birth date
            verifier: Strategy to use (defaults to the configured one)

        Returns:
            The matching patient, or None if the strategy reports unknown
            patient numbers as "not found"

        Raises:
            HTTPException: 400 on mismatch
        """
        verifier = verifier or get_patient_verifier()
        return verifier.verify(db, normalize_patient_id(patient_id), name, birth_date)

    @staticmethod
    def link_patient(
        db: Session,
        session: "SessionContext",
        patient_id: str,
        name: str,
        birth_date: Optional[str] = None,
        verifier: Optional[PatientVerifier] = None,
    ) -> Patient:
        """
        Link the caller's LINE account to a patient number.

        Unknown patient numbers are registered on the spot. Known ones are
        verified again here, whatever the client did before, and are only
        claimed if no other LINE account holds them. The claim is a
        conditional update so two concurrent link attempts cannot both win.

        Args:
            db: Database session
            session: Caller's patient session
            patient_id: Patient number as typed
            name: Claimed full name
            birth_date: Claimed birth date (birth-date verification)
            verifier: Strategy to use (defaults to the configured one)

        Returns:
            The linked Patient

        Raises:
            HTTPException: 400 on verification failure, 409 if the patient is
                linked to another LINE account or the caller's account is
                linked to another patient
        """
        verifier = verifier or get_patient_verifier()
        line_user_id = session.line_user_id
        if not line_user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Patient session required"
            )

        patient_id = normalize_patient_id(patient_id)
        name = validate_patient_name(name)
        birth_date = validate_birth_date_field(birth_date)

        current = PatientService.get_by_line_user_id(db, line_user_id)
        if current and current.patient_id != patient_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=IDENTITY_IN_USE_MESSAGE
            )

        patient = db.get(Patient, patient_id)
        if patient is None:
            created = PatientService._register_patient(db, session, patient_id, name, birth_date)
            if created is not None:
                return created
            # Lost a registration race: the number exists now, continue as a link
            patient = db.get(Patient, patient_id)
            if patient is None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=IDENTITY_IN_USE_MESSAGE
                )

        verifier.check(patient, name, birth_date)

        if patient.line_user_id and patient.line_user_id != line_user_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=ALREADY_LINKED_MESSAGE
            )

        return PatientService._claim_patient(db, session, patient, name, birth_date, verifier)

    @staticmethod
    def _register_patient(
        db: Session,
        session: "SessionContext",
        patient_id: str,
        name: str,
        birth_date: Optional[str],
    ) -> Optional[Patient]:
        """
        Create a self-registered, already linked patient.

        Returns:
            The new Patient, or None if the patient number was created
            concurrently by someone else
        """
        try:
            patient = Patient(
                patient_id=patient_id,
                name=name,
                birth_date=birth_date,
                line_user_id=session.line_user_id,
                owner_subject_id=session.subject_id,
                linked_at=jst_now(),
                created_by_type=CREATED_BY_PATIENT,
            )
            db.add(patient)
            db.commit()
            db.refresh(patient)
        except IntegrityError:
            db.rollback()
            logger.info(f"Patient {patient_id} registration conflicted; retrying as link")
            return None
        except Exception as e:
            logger.exception(f"Failed to register patient {patient_id}: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="登録に失敗しました。しばらくしてから再度お試しください"
            )

        logger.info(f"Self-registered patient {patient_id}")
        return patient

    @staticmethod
    def _claim_patient(
        db: Session,
        session: "SessionContext",
        patient: Patient,
        name: str,
        birth_date: Optional[str],
        verifier: PatientVerifier,
    ) -> Patient:
        """Set the caller's identity on an existing patient unless another identity got there first."""
        now = jst_now()
        values = {
            "line_user_id": session.line_user_id,
            "owner_subject_id": session.subject_id,
            "linked_at": now,
            "updated_at": now,
        }
        # Name verification proved the stored name matches; only other strategies take the typed name
        if verifier.strategy != "name":
            values["name"] = name
        if birth_date and not patient.birth_date:
            values["birth_date"] = birth_date

        try:
            updated = db.query(Patient).filter(
                Patient.patient_id == patient.patient_id,
                or_(Patient.line_user_id.is_(None), Patient.line_user_id == session.line_user_id),
            ).update(values, synchronize_session=False)

            if updated == 0:
                db.rollback()
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=ALREADY_LINKED_MESSAGE
                )

            db.commit()
        except HTTPException:
            raise
        except IntegrityError:
            # The caller's LINE account was linked to another patient meanwhile
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=IDENTITY_IN_USE_MESSAGE
            )
        except Exception as e:
            logger.exception(f"Failed to link patient {patient.patient_id}: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="連携に失敗しました。しばらくしてから再度お試しください"
            )

        db.refresh(patient)
        logger.info(f"Linked patient {patient.patient_id} to LINE user {session.line_user_id[:10]}...")
        return patient

    @staticmethod
    def update_name(db: Session, patient_id: str, name: str) -> Patient:
        """
        Correct a patient's name (staff).

        The patient's active visits get the new name in the same transaction;
        paid and cancelled visits keep the name they were served under. Unknown
        patient numbers are registered as staff-created records.

        Args:
            db: Database session
            patient_id: Patient number
            name: Corrected name

        Returns:
            The updated Patient
        """
        patient_id = normalize_patient_id(patient_id)
        name = validate_patient_name(name)

        try:
            patient = db.get(Patient, patient_id)
            if patient is None:
                patient = Patient(patient_id=patient_id, name=name, created_by_type=CREATED_BY_STAFF)
                db.add(patient)
            else:
                patient.name = name

            active_visits = db.query(Visit).filter(
                Visit.patient_id == patient_id,
                Visit.status == VISIT_STATUS_ACTIVE,
            ).all()
            for visit in active_visits:
                visit.name = name

            db.commit()
            db.refresh(patient)
        except Exception as e:
            logger.exception(f"Failed to update name of patient {patient_id}: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="氏名の更新に失敗しました"
            )

        logger.info(f"Updated name of patient {patient_id} ({len(active_visits)} active visits)")
        hub = get_visit_queue_hub()
        for visit_date in sorted({visit.date for visit in active_visits}):
            hub.publish(visit_date)
        return patient

    @staticmethod
    def import_patients(db: Session, text: Union[str, Iterable[str]]) -> ImportResult:
        """
        Register or update patients from ``patientId, name`` lines (staff).

        Rows are merged into existing records and committed in chunks of
        IMPORT_BATCH_SIZE. Linking fields of existing records are kept.

        Args:
            db: Database session
            text: Import file contents or lines

        Returns:
            ImportResult with imported and skipped counts
        """
        parsed = parse_patient_import(text)
        result = ImportResult(skipped_lines=list(parsed.skipped_lines))

        for start in range(0, len(parsed.rows), IMPORT_BATCH_SIZE):
            chunk = parsed.rows[start:start + IMPORT_BATCH_SIZE]
            pending: Dict[str, Patient] = {}
            try:
                for patient_id, name in chunk:
                    patient = pending.get(patient_id) or db.get(Patient, patient_id)
                    if patient is None:
                        patient = Patient(patient_id=patient_id, name=name, created_by_type=CREATED_BY_STAFF)
                        db.add(patient)
                        pending[patient_id] = patient
                    else:
                        patient.name = name
                        patient.updated_at = jst_now()
                db.commit()
            except Exception as e:
                logger.exception(f"Patient import failed at row {start + 1}: {e}")
                db.rollback()
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=f"インポートに失敗しました（{result.imported}件登録済み）"
                )
            result.imported += len(chunk)

        result.skipped = len(result.skipped_lines)
        logger.info(f"Imported {result.imported} patients, skipped {result.skipped} lines")
        return result
