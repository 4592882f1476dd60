"""
Public status model: the aggregate read by the waiting-room display.

A single row, continuously overwritten by the public status aggregator. It is
a materialized view of the day's visits and never an independent source of truth.
"""

from datetime import datetime

from sqlalchemy import Integer, String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class PublicStatus(Base):
    """Published queue length and estimated wait."""

    __tablename__ = "public_status"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    """Row key; always 'today'."""

    active_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Number of active visits today at the last recompute."""

    estimated_wait_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Average service time multiplied by the active count, rounded."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Server timestamp of the last recompute."""
