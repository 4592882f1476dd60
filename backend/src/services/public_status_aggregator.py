"""
Public status aggregator.

The only writer of the public status row. It:
1. Subscribes to today's visit queue on the hub and recomputes the estimate
   whenever the queue changes
2. Recomputes on a fixed interval, which also moves the subscription to the
   new clinic day after midnight JST and picks up writes made outside this
   process
"""

import asyncio
import logging
from datetime import date
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore

from core.config import PUBLIC_STATUS_REFRESH_SECONDS
from core.database import get_db_context
from models import Visit
from services.visit_queue_hub import VisitQueueHub, get_visit_queue_hub
from services.wait_time_service import PublicStatusService, estimate_wait
from utils.datetime_utils import JST_TZ, clinic_today

logger = logging.getLogger(__name__)

# Global singleton instance
_public_status_aggregator: Optional['PublicStatusAggregator'] = None


class PublicStatusAggregator:
    """
    Keeps the public status row in step with today's visits.

    Database sessions are created fresh for each recompute.
    """

    def __init__(self, hub: Optional[VisitQueueHub] = None, refresh_seconds: int = PUBLIC_STATUS_REFRESH_SECONDS):
        self.hub = hub or get_visit_queue_hub()
        self.refresh_seconds = refresh_seconds
        self.scheduler = AsyncIOScheduler(timezone=JST_TZ)
        self._is_started = False
        self._watched_date: Optional[date] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def watched_date(self) -> Optional[date]:
        """Clinic day currently subscribed to."""
        return self._watched_date

    async def start_scheduler(self) -> None:
        """
        Subscribe to today's queue and start the periodic refresh.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Public status aggregator is already started")
            return

        await asyncio.to_thread(self.watch_today)

        self.scheduler.add_job(  # type: ignore
            self._run_refresh,
            IntervalTrigger(seconds=self.refresh_seconds),
            id="public_status_refresh",
            name="Public status refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Public status aggregator started (refresh every {self.refresh_seconds}s)")

    async def stop_scheduler(self) -> None:
        """
        Stop the periodic refresh and drop the queue subscription.

        This should be called during application shutdown.
        """
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
            self._watched_date = None
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Public status aggregator stopped")

    def watch_today(self) -> None:
        """(Re)subscribe to the current clinic day if it changed."""
        today = clinic_today()
        if self._watched_date == today:
            return

        if self._unsubscribe:
            self._unsubscribe()
        logger.info(f"Public status now follows visits of {today}")
        self._watched_date = today
        # The hub delivers the current list right away, which stores a fresh status
        self._unsubscribe = self.hub.subscribe(today, self._on_visits, self._on_error)

    def refresh(self) -> None:
        """Follow the day rollover and recompute from the database."""
        self.watch_today()
        try:
            with get_db_context() as db:
                PublicStatusService.recompute(db, self._watched_date)
        except Exception as e:
            logger.exception(f"❌ Scheduled public status refresh failed: {e}")
            # Don't re-raise - allow scheduler to continue

    async def _run_refresh(self) -> None:
        # Blocking database work runs off the event loop
        await asyncio.to_thread(self.refresh)

    def _on_visits(self, visits: List[Visit]) -> None:
        estimate = estimate_wait(visits)
        try:
            with get_db_context() as db:
                PublicStatusService.store(db, estimate)
        except Exception as e:
            logger.exception(f"Failed to publish status after queue change: {e}")

    def _on_error(self, error: Exception) -> None:
        logger.error(f"Visit queue subscription error: {error}")


def get_public_status_aggregator() -> PublicStatusAggregator:
    """
    Get the global public status aggregator instance.

    Returns:
        PublicStatusAggregator: The global aggregator instance
    """
    global _public_status_aggregator
    if _public_status_aggregator is None:
        _public_status_aggregator = PublicStatusAggregator()
    return _public_status_aggregator


async def start_public_status_aggregator() -> None:
    """
    Start the global public status aggregator.

    This should be called during application startup.
    """
    aggregator = get_public_status_aggregator()
    await aggregator.start_scheduler()


async def stop_public_status_aggregator() -> None:
    """
    Stop the global public status aggregator.

    This should be called during application shutdown.
    """
    global _public_status_aggregator
    if _public_status_aggregator:
        await _public_status_aggregator.stop_scheduler()
