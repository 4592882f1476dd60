# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Every Patient Directory and Visit Queue operation receives the caller as an
explicit SessionContext built here from the bearer token; nothing reads the
signed-in user from module state.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.database import get_db
from services.jwt_service import jwt_service, TokenPayload
from models import StaffUser

logger = logging.getLogger(__name__)


class SessionContext:
    """Authenticated caller extracted from a session token."""

    def __init__(
        self,
        session_type: str,
        subject_id: str,
        name: str,
        line_user_id: Optional[str] = None,
        email: Optional[str] = None,
    ):
        self.session_type = session_type  # "patient" or "staff"
        self.subject_id = subject_id  # Opaque session subject id
        self.name = name
        self.line_user_id = line_user_id  # Patients only
        self.email = email  # Staff only

    def is_staff(self) -> bool:
        """Check if the caller is signed in as staff."""
        return self.session_type == "staff"

    def is_patient(self) -> bool:
        """Check if the caller is a LIFF patient session."""
        return self.session_type == "patient"

    def __repr__(self) -> str:
        return f"SessionContext(session_type='{self.session_type}', subject_id='{self.subject_id}')"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None

    return jwt_service.verify_token(credentials.credentials)


def get_current_session(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
) -> SessionContext:
    """Get the caller's session context from the JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    return SessionContext(
        session_type=payload.session_type,
        subject_id=payload.sub,
        name=payload.name,
        line_user_id=payload.line_user_id,
        email=payload.email,
    )


def require_patient_session(session: SessionContext = Depends(get_current_session)) -> SessionContext:
    """Require a LIFF patient session carrying a LINE user id."""
    if not session.is_patient() or not session.line_user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Patient session required"
        )
    return session


def require_staff(
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db)
) -> SessionContext:
    """Require an active staff account."""
    if not session.is_staff():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required"
        )

    staff_user = db.query(StaffUser).filter(StaffUser.email == session.email).first()
    if not staff_user or not staff_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="アカウントが無効です。管理者に連絡してください"
        )
    return session
