"""
Tests for the in-process visit queue hub.
"""

from contextlib import contextmanager
from datetime import date, timedelta

from services.visit_queue_hub import VisitQueueHub
from tests.helpers import add_visit, minutes_ago
from utils.datetime_utils import clinic_today


class TestVisitQueueHub:
    """Test subscribe / publish fan-out."""

    def test_subscribe_delivers_current_list_immediately(self, db_session):
        """Test the initial snapshot is delivered before subscribe returns."""
        add_visit(db_session, "1001", arrived_at=minutes_ago(5))
        hub = VisitQueueHub()
        received = []

        hub.subscribe(clinic_today(), received.append)

        assert len(received) == 1
        assert [v.patient_id for v in received[0]] == ["1001"]

    def test_snapshot_in_arrival_order(self, db_session):
        """Test visits arrive oldest first regardless of insert order."""
        add_visit(db_session, "2", arrived_at=minutes_ago(1))
        add_visit(db_session, "1", arrived_at=minutes_ago(30), created_by="staff")
        add_visit(db_session, "3", arrived_at=minutes_ago(10), status="paid")
        hub = VisitQueueHub()
        received = []

        hub.subscribe(clinic_today(), received.append)

        assert [v.patient_id for v in received[-1]] == ["1", "3", "2"]

    def test_publish_only_reaches_same_day(self, db_session):
        """Test subscribers of other days are not notified."""
        today = clinic_today()
        hub = VisitQueueHub()
        today_updates, other_updates = [], []
        hub.subscribe(today, today_updates.append)
        hub.subscribe(today - timedelta(days=1), other_updates.append)

        add_visit(db_session, "1001")
        hub.publish(today)

        assert len(today_updates) == 2
        assert len(today_updates[-1]) == 1
        assert len(other_updates) == 1

    def test_unsubscribe_is_idempotent(self):
        hub = VisitQueueHub()
        received = []
        unsubscribe = hub.subscribe(clinic_today(), received.append)
        assert hub.subscriber_count() == 1

        unsubscribe()
        unsubscribe()
        hub.publish(clinic_today())

        assert hub.subscriber_count() == 0
        assert len(received) == 1

    def test_subscriber_count_per_day(self):
        hub = VisitQueueHub()
        hub.subscribe(date(2025, 4, 1), lambda visits: None)
        hub.subscribe(date(2025, 4, 1), lambda visits: None)
        hub.subscribe(date(2025, 4, 2), lambda visits: None)

        assert hub.subscriber_count() == 3
        assert hub.subscriber_count(date(2025, 4, 1)) == 2

    def test_failing_subscriber_does_not_block_others(self):
        """Test one raising callback does not stop delivery to the rest."""
        hub = VisitQueueHub()
        received = []

        def broken(visits):
            raise RuntimeError("boom")

        hub.subscribe(clinic_today(), broken)
        hub.subscribe(clinic_today(), received.append)
        hub.publish(clinic_today())

        assert len(received) == 2

    def test_load_failure_goes_to_error_callback(self):
        """Test snapshot load errors are reported to on_error."""
        @contextmanager
        def failing_session():
            raise RuntimeError("database unavailable")
            yield

        hub = VisitQueueHub(session_factory=failing_session)
        data, errors = [], []

        hub.subscribe(clinic_today(), data.append, errors.append)

        assert data == []
        assert len(errors) == 1
        assert "database unavailable" in str(errors[0])

    def test_load_failure_without_error_callback(self):
        @contextmanager
        def failing_session():
            raise RuntimeError("database unavailable")
            yield

        hub = VisitQueueHub(session_factory=failing_session)
        data = []

        # Must not raise
        hub.subscribe(clinic_today(), data.append)
        assert data == []
