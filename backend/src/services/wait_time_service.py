"""
Wait-time estimation and the public status record.

The estimate is deliberately simple: the average time from arrival to payment
over today's paid visits (15 minutes until the first one is paid), multiplied
by the number of patients still waiting, rounded to whole minutes. The result
is stored in the single ``public_status`` row that the waiting-room display
and the LIFF app read.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import WAIT_DISPLAY_STRATEGY
from core.constants import (
    DEFAULT_SERVICE_MINUTES,
    PUBLIC_STATUS_ID,
    VISIT_STATUS_ACTIVE,
    VISIT_STATUS_PAID,
    WAIT_BAND_OVERFLOW_LABEL,
    WAIT_BANDS,
)
from models import PublicStatus, Visit
from utils.datetime_utils import clinic_today, jst_now, minutes_between
from utils.visit_queries import get_visits_for_date

logger = logging.getLogger(__name__)


@dataclass
class WaitEstimate:
    """Result of estimating the wait from a day's visits."""

    active_count: int
    average_service_minutes: float
    estimated_wait_minutes: int


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def estimate_wait(visits: Iterable[Visit]) -> WaitEstimate:
    """
    Estimate the current wait from one day's visits.

    Args:
        visits: All visits of the day (any status)

    Returns:
        WaitEstimate with the active count, average service time and estimate
    """
    active_count = 0
    durations = []
    for visit in visits:
        if visit.status == VISIT_STATUS_ACTIVE:
            active_count += 1
        elif visit.status == VISIT_STATUS_PAID and visit.arrived_at and visit.completed_at:
            durations.append(minutes_between(visit.arrived_at, visit.completed_at))

    average = sum(durations) / len(durations) if durations else float(DEFAULT_SERVICE_MINUTES)
    return WaitEstimate(
        active_count=active_count,
        average_service_minutes=average,
        estimated_wait_minutes=round_half_up(average * active_count),
    )


def wait_band_label(active_count: int) -> str:
    """
    Describe the wait by queue length instead of minutes.

    Args:
        active_count: Number of patients waiting

    Returns:
        Japanese label for the band the count falls in
    """
    for upper_bound, label in WAIT_BANDS:
        if active_count <= upper_bound:
            return label
    return WAIT_BAND_OVERFLOW_LABEL


def wait_label(active_count: int, estimated_wait_minutes: int, strategy: Optional[str] = None) -> str:
    """
    Wording shown on the public display.

    Args:
        active_count: Number of patients waiting
        estimated_wait_minutes: Estimated wait
        strategy: "minutes" or "band" (defaults to WAIT_DISPLAY_STRATEGY)

    Raises:
        ValueError: If the strategy is unknown
    """
    strategy = strategy or WAIT_DISPLAY_STRATEGY
    if strategy == "band":
        return wait_band_label(active_count)
    if strategy == "minutes":
        if active_count == 0:
            return "待ち時間なし"
        return f"約{estimated_wait_minutes}分待ち"
    raise ValueError(f"Unknown wait display strategy: {strategy}")


class PublicStatusService:
    """Reads and recomputes the public status row."""

    @staticmethod
    def recompute(db: Session, visit_date: Optional[date] = None) -> PublicStatus:
        """
        Recompute the public status from a day's visits and overwrite the row.

        Args:
            db: Database session
            visit_date: Clinic calendar day (defaults to today in JST)

        Returns:
            The stored PublicStatus
        """
        visit_date = visit_date or clinic_today()
        estimate = estimate_wait(get_visits_for_date(db, visit_date))
        public_status = PublicStatusService.store(db, estimate)
        logger.debug(
            f"Public status for {visit_date}: {estimate.active_count} waiting, "
            f"~{estimate.estimated_wait_minutes} min"
        )
        return public_status

    @staticmethod
    def store(db: Session, estimate: WaitEstimate) -> PublicStatus:
        """
        Overwrite the public status row with an estimate.

        The row is created on first use. When a concurrent writer creates it
        first, the insert fails on the primary key and is retried as an update.
        """
        try:
            try:
                return PublicStatusService._write(db, estimate)
            except IntegrityError:
                db.rollback()
                logger.info("Public status row created concurrently, retrying as update")
            return PublicStatusService._write(db, estimate)
        except Exception as e:
            logger.exception(f"Failed to store public status: {e}")
            db.rollback()
            raise

    @staticmethod
    def _write(db: Session, estimate: WaitEstimate) -> PublicStatus:
        public_status = db.get(PublicStatus, PUBLIC_STATUS_ID)
        if public_status is None:
            public_status = PublicStatus(id=PUBLIC_STATUS_ID)
            db.add(public_status)

        public_status.active_count = estimate.active_count
        public_status.estimated_wait_minutes = estimate.estimated_wait_minutes
        public_status.updated_at = jst_now()
        db.commit()
        return public_status

    @staticmethod
    def get(db: Session) -> Optional[PublicStatus]:
        """Get the public status row, or None before the first recompute."""
        return db.get(PublicStatus, PUBLIC_STATUS_ID)
