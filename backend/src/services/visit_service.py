"""
Visit service: the daily reception queue.

Patients check themselves in from the LIFF app; staff check patients in by
proxy, move visits between active, paid and cancelled, close the day and mark
visits as entered in the receipt computer. Every committed change is published
to the visit queue hub so the staff dashboard and the public status follow it.

A patient cannot check themselves in while any visit of theirs is active for
the day, whether they checked in themselves or staff did it for them. The
query before insert covers both origins; the partial unique index
``uq_visits_active_self_check_in`` rejects the second of two concurrent self
check-ins at commit.
"""

import logging
from datetime import date
from typing import List, Optional, TYPE_CHECKING

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import (
    CLOSED_BY_STAFF,
    CREATED_BY_PATIENT,
    CREATED_BY_STAFF,
    VISIT_STATUS_ACTIVE,
    VISIT_STATUS_CANCELLED,
    VISIT_STATUS_PAID,
    VISIT_STATUSES,
)
from models import Patient, Visit
from services.visit_queue_hub import get_visit_queue_hub
from utils.datetime_utils import clinic_today, jst_now
from utils.patient_validators import normalize_patient_id, validate_patient_name
from utils.visit_queries import find_active_visit, get_visits_for_date

if TYPE_CHECKING:
    from auth.dependencies import SessionContext

logger = logging.getLogger(__name__)

ALREADY_CHECKED_IN_MESSAGE = "既に受付済みです。"
VISIT_NOT_FOUND_MESSAGE = "受付データが見つかりません"


class VisitService:
    """Service class for visit queue operations."""

    @staticmethod
    def list_visits_for_date(db: Session, visit_date: Optional[date] = None) -> List[Visit]:
        """
        List a day's visits in arrival order.

        Args:
            db: Database session
            visit_date: Clinic calendar day (defaults to today in JST)

        Returns:
            Visits ordered by arrivedAt ascending
        """
        return get_visits_for_date(db, visit_date or clinic_today())

    @staticmethod
    def get_visit(db: Session, visit_id: int) -> Visit:
        """
        Get a visit by id.

        Raises:
            HTTPException: 404 if the visit does not exist
        """
        visit = db.get(Visit, visit_id)
        if not visit:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=VISIT_NOT_FOUND_MESSAGE
            )
        return visit

    @staticmethod
    def get_active_visit_for_patient(db: Session, patient_id: str) -> Optional[Visit]:
        """Today's active visit for a patient (self or proxy check-in), if any."""
        return find_active_visit(db, patient_id, clinic_today())

    @staticmethod
    def create_self_visit(db: Session, session: "SessionContext", patient: Patient) -> Visit:
        """
        Check a linked patient in for today.

        Args:
            db: Database session
            session: Caller's patient session
            patient: The caller's linked patient record

        Returns:
            The created active visit

        Raises:
            HTTPException: 409 if the patient already has an active check-in today
        """
        today = clinic_today()

        if find_active_visit(db, patient.patient_id, today):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=ALREADY_CHECKED_IN_MESSAGE
            )

        try:
            visit = Visit(
                date=today,
                patient_id=patient.patient_id,
                name=patient.name,
                line_user_id=patient.line_user_id or session.line_user_id,
                owner_subject_id=session.subject_id,
                status=VISIT_STATUS_ACTIVE,
                arrived_at=jst_now(),
                created_by=CREATED_BY_PATIENT,
                receipt_status=False,
            )
            db.add(visit)
            db.commit()
            db.refresh(visit)
        except IntegrityError:
            # A concurrent check-in for the same patient won the unique index
            db.rollback()
            logger.info(f"Duplicate self check-in rejected for patient {patient.patient_id}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=ALREADY_CHECKED_IN_MESSAGE
            )
        except Exception as e:
            logger.exception(f"Failed to create visit for patient {patient.patient_id}: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="受付に失敗しました。しばらくしてから再度お試しください"
            )

        logger.info(f"Patient {patient.patient_id} checked in (visit {visit.id})")
        get_visit_queue_hub().publish(today)
        return visit

    @staticmethod
    def create_proxy_visit(db: Session, patient_id: str, name: str) -> Visit:
        """
        Check a patient in on their behalf (staff).

        No same-day check is made: staff may deliberately queue a patient twice.

        Args:
            db: Database session
            patient_id: Patient number (need not be registered)
            name: Name to show in the queue

        Returns:
            The created active visit
        """
        patient_id = normalize_patient_id(patient_id)
        name = validate_patient_name(name)
        today = clinic_today()

        patient = db.get(Patient, patient_id)
        try:
            visit = Visit(
                date=today,
                patient_id=patient_id,
                name=name,
                line_user_id=patient.line_user_id if patient else None,
                status=VISIT_STATUS_ACTIVE,
                arrived_at=jst_now(),
                created_by=CREATED_BY_STAFF,
                receipt_status=False,
            )
            db.add(visit)
            db.commit()
            db.refresh(visit)
        except Exception as e:
            logger.exception(f"Failed to create proxy visit for patient {patient_id}: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="代理受付に失敗しました"
            )

        logger.info(f"Proxy check-in for patient {patient_id} (visit {visit.id})")
        get_visit_queue_hub().publish(today)
        return visit

    @staticmethod
    def update_status(db: Session, visit_id: int, new_status: str) -> Visit:
        """
        Move a visit to another status.

        Every transition between active, paid and cancelled is allowed.
        Moving to paid stamps completedAt; moving back to active clears
        completedAt and closedBy.

        Args:
            db: Database session
            visit_id: Visit id
            new_status: "active", "paid" or "cancelled"

        Returns:
            The updated visit

        Raises:
            HTTPException: 404 if the visit does not exist, 409 if reactivating
                would give the patient two active self check-ins today
        """
        if new_status not in VISIT_STATUSES:
            raise ValueError(f"Invalid visit status: {new_status}")

        visit = VisitService.get_visit(db, visit_id)
        old_status = visit.status

        if new_status == VISIT_STATUS_ACTIVE and visit.created_by == CREATED_BY_PATIENT and old_status != VISIT_STATUS_ACTIVE:
            if find_active_visit(
                db, visit.patient_id, visit.date,
                created_by=CREATED_BY_PATIENT, exclude_visit_id=visit.id
            ):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=ALREADY_CHECKED_IN_MESSAGE
                )

        visit.status = new_status
        if new_status == VISIT_STATUS_PAID:
            visit.completed_at = jst_now()
        elif new_status == VISIT_STATUS_ACTIVE:
            visit.completed_at = None
            visit.closed_by = None

        try:
            db.commit()
            db.refresh(visit)
        except IntegrityError:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=ALREADY_CHECKED_IN_MESSAGE
            )
        except Exception as e:
            logger.exception(f"Failed to update visit {visit_id} status: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="ステータスの更新に失敗しました"
            )

        logger.info(f"Visit {visit_id}: {old_status} -> {new_status}")
        get_visit_queue_hub().publish(visit.date)
        return visit

    @staticmethod
    def close_all_active(db: Session, visit_date: Optional[date] = None) -> int:
        """
        Cancel every active visit of a day (end-of-day close).

        Paid and cancelled visits are left alone. All rows change in one
        transaction.

        Args:
            db: Database session
            visit_date: Clinic calendar day (defaults to today in JST)

        Returns:
            Number of visits closed
        """
        visit_date = visit_date or clinic_today()
        try:
            closed = db.query(Visit).filter(
                Visit.date == visit_date,
                Visit.status == VISIT_STATUS_ACTIVE,
            ).update(
                {"status": VISIT_STATUS_CANCELLED, "closed_by": CLOSED_BY_STAFF},
                synchronize_session=False
            )
            db.commit()
            # Loaded Visit objects still hold the pre-update status
            db.expire_all()
        except Exception as e:
            logger.exception(f"Failed to close active visits for {visit_date}: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="一括終了に失敗しました"
            )

        logger.info(f"Closed {closed} active visits for {visit_date}")
        if closed:
            get_visit_queue_hub().publish(visit_date)
        return closed

    @staticmethod
    def toggle_receipt(db: Session, visit_id: int) -> Visit:
        """
        Flip the receipt-computer flag of a visit. Status is not touched.

        Raises:
            HTTPException: 404 if the visit does not exist
        """
        visit = VisitService.get_visit(db, visit_id)
        visit.receipt_status = not visit.receipt_status
        try:
            db.commit()
            db.refresh(visit)
        except Exception as e:
            logger.exception(f"Failed to toggle receipt flag of visit {visit_id}: {e}")
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="レセコン登録状態の更新に失敗しました"
            )

        get_visit_queue_hub().publish(visit.date)
        return visit
