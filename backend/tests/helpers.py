"""
Test utilities for clinic reception tests.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from auth.dependencies import SessionContext
from models import Visit
from services.jwt_service import jwt_service, TokenPayload
from utils.datetime_utils import clinic_today, jst_now


def create_patient_token(line_user_id: str, subject_id: str = "patient-session-1") -> str:
    """Create a LIFF patient session token."""
    return jwt_service.create_access_token(TokenPayload(
        sub=subject_id,
        session_type="patient",
        line_user_id=line_user_id,
        name="LINE User",
    ))


def create_staff_token(email: str = "reception@example.com", staff_id: int = 1) -> str:
    """Create a staff session token."""
    return jwt_service.create_access_token(TokenPayload(
        sub=str(staff_id),
        session_type="staff",
        email=email,
        name="受付スタッフ",
    ))


def auth_headers(token: str) -> Dict[str, str]:
    """Bearer authorization header."""
    return {"Authorization": f"Bearer {token}"}


def make_patient_session(line_user_id: str, subject_id: str = "patient-session-1") -> SessionContext:
    """Explicit patient session context for calling services directly."""
    return SessionContext(
        session_type="patient",
        subject_id=subject_id,
        name="LINE User",
        line_user_id=line_user_id,
    )


def add_visit(
    db: Session,
    patient_id: str,
    name: str = "山田太郎",
    status: str = "active",
    created_by: str = "patient",
    visit_date: Optional[date] = None,
    arrived_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
    line_user_id: Optional[str] = None,
) -> Visit:
    """Insert a visit row directly, bypassing the service rules."""
    visit = Visit(
        date=visit_date or clinic_today(),
        patient_id=patient_id,
        name=name,
        line_user_id=line_user_id,
        status=status,
        arrived_at=arrived_at or jst_now(),
        completed_at=completed_at,
        created_by=created_by,
        receipt_status=False,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)
    return visit


def minutes_ago(minutes: float) -> datetime:
    """JST timestamp the given number of minutes in the past."""
    return jst_now() - timedelta(minutes=minutes)
