# pyright: reportMissingTypeStubs=false
"""
Authentication API endpoints for reception staff.

Staff sign in to the dashboard with email and password and receive a bearer
token. Patients sign in through the LIFF endpoints instead.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.orm import Session

from api.responses import CamelModel
from auth.dependencies import SessionContext, require_staff
from core.database import get_db
from models import StaffUser
from services.jwt_service import jwt_service, TokenPayload

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS_MESSAGE = "メールアドレスまたはパスワードが正しくありません"


class StaffLoginRequest(CamelModel):
    """Request model for staff sign-in."""
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class StaffLoginResponse(CamelModel):
    """Response model for staff sign-in."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    display_name: str


class StaffMeResponse(CamelModel):
    """Response model for the signed-in staff member."""
    email: str
    display_name: str


@router.post("/login", summary="Staff email/password login", response_model=StaffLoginResponse)
async def staff_login(
    request: StaffLoginRequest,
    db: Session = Depends(get_db)
):
    """
    Sign a staff member in.

    Unknown emails, wrong passwords and inactive accounts get the same answer.
    """
    staff_user = db.query(StaffUser).filter(StaffUser.email == request.email).first()
    if (
        not staff_user
        or not staff_user.is_active
        or not jwt_service.verify_password(request.password, staff_user.password_hash)
    ):
        logger.info(f"Failed staff login for {request.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_MESSAGE
        )

    payload = TokenPayload(
        sub=str(staff_user.id),
        session_type="staff",
        email=staff_user.email,
        name=staff_user.display_name,
    )
    access_token = jwt_service.create_access_token(payload)
    logger.info(f"Staff {staff_user.email} signed in")

    return StaffLoginResponse(
        access_token=access_token,
        expires_in=int(jwt_service.get_token_lifetime("staff").total_seconds()),
        display_name=staff_user.display_name,
    )


@router.get("/verify", summary="Verify staff access token", response_model=StaffMeResponse)
async def verify_token(session: SessionContext = Depends(require_staff)):
    """Return the signed-in staff member if the token is still valid."""
    return StaffMeResponse(email=session.email or "", display_name=session.name)
