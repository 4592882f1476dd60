"""
In-process publish/subscribe hub for the daily visit queue.

Subscribers register for one clinic day and receive the full, arrival-ordered
list of that day's visits immediately and again after every committed change.
Writers (the visit and patient services) call ``publish`` after commit.

Callbacks run synchronously on the publishing thread. Consumers that live on
an event loop (the staff SSE stream) must hand the snapshot over to their loop
themselves.

The hub only sees writes made through this process. Deployments run a single
API process; the public status aggregator's scheduled refresh covers anything
written elsewhere (scripts, migrations).
"""

import itertools
import logging
import threading
from contextlib import AbstractContextManager
from datetime import date
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from core.database import get_db_context
from models import Visit
from utils.visit_queries import get_visits_for_date

logger = logging.getLogger(__name__)

VisitsCallback = Callable[[List[Visit]], None]
ErrorCallback = Callable[[Exception], None]

# Global singleton instance
_visit_queue_hub: Optional['VisitQueueHub'] = None


class _Subscription:
    """A registered subscriber for one clinic day."""

    def __init__(self, visit_date: date, on_data: VisitsCallback, on_error: Optional[ErrorCallback]):
        self.visit_date = visit_date
        self.on_data = on_data
        self.on_error = on_error


class VisitQueueHub:
    """Fan-out of visit queue snapshots to per-day subscribers."""

    def __init__(self, session_factory: Callable[[], AbstractContextManager[Session]] = get_db_context):
        """
        Initialize the hub.

        Args:
            session_factory: Context manager factory yielding a fresh session
                for each snapshot load
        """
        self._session_factory = session_factory
        self._subscriptions: Dict[int, _Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(
        self,
        visit_date: date,
        on_data: VisitsCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Callable[[], None]:
        """
        Subscribe to a day's queue.

        The current list is delivered before this method returns.

        Args:
            visit_date: Clinic calendar day to watch
            on_data: Called with the ordered visit list on every change
            on_error: Called with the exception when a snapshot cannot be loaded

        Returns:
            Function that cancels the subscription (safe to call more than once)
        """
        subscription = _Subscription(visit_date, on_data, on_error)
        with self._lock:
            subscription_id = next(self._ids)
            self._subscriptions[subscription_id] = subscription

        logger.debug(f"Visit queue subscription {subscription_id} opened for {visit_date}")
        self._deliver(visit_date, [subscription])

        def unsubscribe() -> None:
            with self._lock:
                removed = self._subscriptions.pop(subscription_id, None)
            if removed is not None:
                logger.debug(f"Visit queue subscription {subscription_id} closed")

        return unsubscribe

    def publish(self, visit_date: date) -> None:
        """
        Notify every subscriber of a day that its queue changed.

        Args:
            visit_date: Clinic calendar day whose visits were written
        """
        with self._lock:
            subscriptions = [s for s in self._subscriptions.values() if s.visit_date == visit_date]
        if subscriptions:
            self._deliver(visit_date, subscriptions)

    def subscriber_count(self, visit_date: Optional[date] = None) -> int:
        """Number of open subscriptions, optionally for one day only."""
        with self._lock:
            if visit_date is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions.values() if s.visit_date == visit_date)

    def _load(self, visit_date: date) -> List[Visit]:
        with self._session_factory() as db:
            return get_visits_for_date(db, visit_date)

    def _deliver(self, visit_date: date, subscriptions: List[_Subscription]) -> None:
        try:
            visits = self._load(visit_date)
        except Exception as e:
            logger.exception(f"Failed to load visit queue for {visit_date}: {e}")
            for subscription in subscriptions:
                if subscription.on_error is not None:
                    try:
                        subscription.on_error(e)
                    except Exception:
                        logger.exception("Visit queue error callback failed")
            return

        for subscription in subscriptions:
            try:
                subscription.on_data(visits)
            except Exception as e:
                # A failing subscriber must not break the writer or other subscribers
                logger.exception(f"Visit queue subscriber failed: {e}")


def get_visit_queue_hub() -> VisitQueueHub:
    """
    Get the global visit queue hub instance.

    Returns:
        VisitQueueHub: The global hub instance
    """
    global _visit_queue_hub
    if _visit_queue_hub is None:
        _visit_queue_hub = VisitQueueHub()
    return _visit_queue_hub
