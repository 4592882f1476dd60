# pyright: reportMissingTypeStubs=false
"""
LIFF (LINE Front-end Framework) API endpoints.

These endpoints serve the patient app embedded in LINE: sign-in, linking the
LINE account to a clinic patient number, and same-day self check-in.

All endpoints except login require the patient session token issued by login.
"""

import logging
import uuid
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.orm import Session

from api.responses import (
    CamelModel, PatientResponse, PatientVerifyResponse, VisitResponse,
    patient_to_response, visit_to_response,
)
from auth.dependencies import SessionContext, require_patient_session
from core.database import get_db
from services import PatientService, VisitService
from services.jwt_service import TokenPayload, jwt_service
from services.line_login_service import LineLoginService
from utils.patient_validators import normalize_patient_id

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request/Response Models =====

class LiffLoginRequest(CamelModel):
    """Request model for LIFF authentication."""
    line_user_id: str
    display_name: str = ""
    id_token: Optional[str] = None  # liff.getIDToken(); required when a LINE Login channel is configured


class LiffLoginResponse(CamelModel):
    """Response model for LIFF authentication."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    is_linked: bool
    patient: Optional[PatientResponse] = None


class PatientClaimRequest(CamelModel):
    """Request model for verifying or linking a patient number."""
    patient_id: str
    name: Optional[str] = None
    birth_date: Optional[str] = None

    @field_validator('patient_id')
    @classmethod
    def validate_patient_id(cls, v: str) -> str:
        return normalize_patient_id(v)


# ===== Endpoints =====

@router.post("/auth/liff-login", response_model=LiffLoginResponse)
async def liff_login(
    request: LiffLoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate a LIFF user and issue a patient session token.

    The LINE ID token is verified with LINE when a LINE Login channel is
    configured. Each login gets a new anonymous session subject id; the LINE
    user id is what ties the session to a patient record.
    """
    try:
        line_user_id = await LineLoginService.resolve_line_user_id(request.line_user_id, request.id_token)

        patient = PatientService.get_by_line_user_id(db, line_user_id)

        payload = TokenPayload(
            sub=uuid.uuid4().hex,
            session_type="patient",
            line_user_id=line_user_id,
            name=request.display_name,
        )
        access_token = jwt_service.create_access_token(payload)
        expires_in = int(jwt_service.get_token_lifetime("patient").total_seconds())

        logger.info(f"LIFF login for LINE user {line_user_id[:10]}... (linked={patient is not None})")
        return LiffLoginResponse(
            access_token=access_token,
            expires_in=expires_in,
            is_linked=patient is not None,
            patient=patient_to_response(patient) if patient else None,
        )

    except (HTTPException, httpx.HTTPStatusError):
        raise
    except Exception as e:
        logger.exception(f"LIFF login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="認証に失敗しました"
        )


@router.get("/patient", response_model=PatientResponse)
async def get_my_patient(
    session: SessionContext = Depends(require_patient_session),
    db: Session = Depends(get_db)
):
    """Get the patient record linked to the caller's LINE account."""
    patient = PatientService.get_linked_patient(db, session)
    return patient_to_response(patient)


@router.post("/patient/verify", response_model=PatientVerifyResponse)
async def verify_patient(
    request: PatientClaimRequest,
    session: SessionContext = Depends(require_patient_session),
    db: Session = Depends(get_db)
):
    """
    Check a patient number against the claimed name or birth date.

    Wrong details are rejected with one generic message. Depending on the
    verification strategy, an unknown patient number either fails the same
    way or returns found=false so the app can offer new registration.
    """
    patient = PatientService.verify(db, request.patient_id, request.name, request.birth_date)
    if patient is None:
        return PatientVerifyResponse(found=False, patient_id=request.patient_id)
    return PatientVerifyResponse(found=True, patient_id=patient.patient_id, name=patient.name)


@router.post("/patient/link", response_model=PatientResponse)
async def link_patient(
    request: PatientClaimRequest,
    session: SessionContext = Depends(require_patient_session),
    db: Session = Depends(get_db)
):
    """
    Link the caller's LINE account to a patient number.

    Unknown patient numbers are registered with the supplied name.
    """
    if not request.name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="氏名を入力してください"
        )

    patient = PatientService.link_patient(
        db, session, request.patient_id, request.name, request.birth_date
    )
    return patient_to_response(patient)


@router.get("/visits/today", response_model=Optional[VisitResponse])
async def get_my_visit_today(
    session: SessionContext = Depends(require_patient_session),
    db: Session = Depends(get_db)
):
    """Get the caller's active check-in for today, or null."""
    patient = PatientService.get_linked_patient(db, session)
    visit = VisitService.get_active_visit_for_patient(db, patient.patient_id)
    return visit_to_response(visit) if visit else None


@router.post("/visits", response_model=VisitResponse, status_code=status.HTTP_201_CREATED)
async def check_in(
    session: SessionContext = Depends(require_patient_session),
    db: Session = Depends(get_db)
):
    """Check the caller's linked patient in for today."""
    patient = PatientService.get_linked_patient(db, session)
    visit = VisitService.create_self_visit(db, session, patient)
    return visit_to_response(visit)
