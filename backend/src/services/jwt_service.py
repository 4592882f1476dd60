"""
JWT Service for session token management.

Issues and validates the signed session tokens carried by the patient LIFF app
and the staff dashboard. Also hashes and checks staff passwords.
"""

import bcrypt
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from pydantic import BaseModel

from core.config import JWT_SECRET_KEY, JWT_ACCESS_TOKEN_EXPIRE_MINUTES, LIFF_SESSION_EXPIRE_MINUTES


class TokenPayload(BaseModel):
    """Payload structure for JWT tokens."""
    sub: str  # Session subject id (anonymous per patient session, staff user id for staff)
    session_type: str  # "patient" or "staff"
    line_user_id: Optional[str] = None  # Patients only
    email: Optional[str] = None  # Staff only
    name: str
    iat: Optional[int] = None  # Set by JWT service
    exp: Optional[int] = None  # Set by JWT service


class JWTService:
    """Service for JWT token operations."""

    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    PATIENT_TOKEN_EXPIRE_MINUTES = LIFF_SESSION_EXPIRE_MINUTES

    @classmethod
    def create_access_token(cls, payload: TokenPayload) -> str:
        """Create a JWT access token; patient sessions live longer than staff sessions."""
        to_encode = payload.model_dump(exclude={"iat", "exp"})
        now = datetime.now(timezone.utc)
        to_encode.update({"exp": now + cls.get_token_lifetime(payload.session_type), "iat": now})
        return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def verify_token(cls, token: str) -> Optional[TokenPayload]:
        """Verify and decode a JWT token."""
        try:
            payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[cls.ALGORITHM])
            return TokenPayload(**payload)
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_token_lifetime(cls, session_type: str) -> timedelta:
        """Get the lifetime of a token for a session type."""
        if session_type == "patient":
            return timedelta(minutes=cls.PATIENT_TOKEN_EXPIRE_MINUTES)
        elif session_type == "staff":
            return timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES)
        else:
            raise ValueError(f"Unknown session type: {session_type}")

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a staff password with bcrypt."""
        return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """Check a staff password against its bcrypt hash."""
        try:
            return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
        except ValueError:
            # Malformed stored hash
            return False


# Global instance
jwt_service = JWTService()
