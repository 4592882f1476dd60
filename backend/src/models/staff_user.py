"""
Staff user model for reception dashboard sign-in.
"""

from datetime import datetime

from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class StaffUser(Base):
    """Reception staff account signing in with email and password."""

    __tablename__ = "staff_users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True)
    """Login email (unique)."""

    password_hash: Mapped[str] = mapped_column(String(255))
    """bcrypt hash of the password."""

    display_name: Mapped[str] = mapped_column(String(100))

    is_active: Mapped[bool] = mapped_column(default=True)
    """Inactive accounts cannot sign in."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
