"""
Tests for the automatic period boundary trigger.
"""

from datetime import date
from uuid import uuid4

import pytest

from src.closing import evaluate_boundaries, is_month_close_due
from src.models.audit import AuditEventType
from src.models.ledger import BoundaryState, CloseMarkers, TransactionType
from src.services.storage import StoreWriteError

from tests.conftest import USER, make_txn, run, seed_ledger


FEB_1 = date(2025, 2, 1)


class TestEvaluateBoundaries:
    """Tests for the pure boundary decision."""

    def test_fresh_user_crosses_day_boundary(self):
        """Test a user with no markers needs a daily close."""
        states = evaluate_boundaries(date(2025, 1, 6), CloseMarkers())
        assert states == [BoundaryState.DAY_BOUNDARY_CROSSED]

    def test_same_day_is_normal(self):
        """Test a second session on the same day does nothing."""
        markers = CloseMarkers(last_daily_close_date=date(2025, 1, 6))
        assert evaluate_boundaries(date(2025, 1, 6), markers) == [BoundaryState.NORMAL]

    def test_first_of_month_crosses_both(self):
        """Test the 1st triggers the day close first, then the month close."""
        states = evaluate_boundaries(FEB_1, CloseMarkers())
        assert states == [
            BoundaryState.DAY_BOUNDARY_CROSSED,
            BoundaryState.MONTH_BOUNDARY_CROSSED,
        ]

    def test_closed_month_not_due(self):
        """Test a month already in closed_months is not proposed again."""
        markers = CloseMarkers(last_daily_close_date=FEB_1, closed_months={"2025-01"})
        assert evaluate_boundaries(FEB_1, markers) == [BoundaryState.NORMAL]

    def test_archived_month_not_due(self):
        """Test an existing monthly archive suppresses the month close."""
        assert not is_month_close_due(FEB_1, CloseMarkers(), previous_month_archived=True)
        assert is_month_close_due(FEB_1, CloseMarkers(), previous_month_archived=False)

    def test_month_close_only_on_first(self):
        """Test the month boundary is only checked on the 1st."""
        assert not is_month_close_due(date(2025, 2, 2), CloseMarkers(), False)

    def test_pure_function(self):
        """Test identical inputs always give identical states."""
        markers = CloseMarkers(last_daily_close_date=date(2025, 1, 31))
        assert evaluate_boundaries(FEB_1, markers) == evaluate_boundaries(FEB_1, markers)


class TestBoundaryTrigger:
    """Tests for BoundaryTrigger.run against the store."""

    def test_closes_yesterday_and_sets_marker(self, trigger, repository, clock):
        """Test the day boundary closes yesterday and records today."""
        seed_ledger(repository, USER, make_txn(date(2025, 1, 5)))
        clock.today = date(2025, 1, 6)

        result = run(trigger.run(USER))

        assert result.day_close.closed
        assert result.day_close.period == "2025-01-05"
        markers = run(repository.get_markers(USER))
        assert markers.last_daily_close_date == date(2025, 1, 6)

    def test_second_run_same_day_is_noop(self, trigger, repository, clock):
        """Test repeated page loads on one day do nothing."""
        clock.today = date(2025, 1, 6)
        run(trigger.run(USER))

        result = run(trigger.run(USER))

        assert result.states == [BoundaryState.NORMAL]
        assert result.day_close is None

    def test_marker_set_even_when_nothing_to_close(self, trigger, repository, clock):
        """Test an empty yesterday still records the check."""
        clock.today = date(2025, 1, 6)
        result = run(trigger.run(USER))
        assert not result.day_close.closed
        assert run(repository.get_markers(USER)).last_daily_close_date == date(2025, 1, 6)

    def test_failed_close_leaves_marker(self, trigger, repository, store, clock):
        """Test a failing close does not advance the marker."""
        seed_ledger(repository, USER, make_txn(date(2025, 1, 5)))
        clock.today = date(2025, 1, 6)
        store.fail_writes_for("daily-archive:")

        with pytest.raises(StoreWriteError):
            run(trigger.run(USER))

        assert run(repository.get_markers(USER)).last_daily_close_date is None

    def test_month_close_reported_without_confirm(self, trigger, repository, clock):
        """Test the month close is only reported when no callback is given."""
        seed_ledger(repository, USER, make_txn(date(2025, 1, 20)))
        clock.today = FEB_1

        result = run(trigger.run(USER))

        assert result.month_close_due == "2025-01"
        assert result.month_close is None
        assert run(repository.get_monthly_archive(USER, "2025-01")) is None
        assert "2025-01" not in run(repository.get_markers(USER)).closed_months

    def test_month_close_confirmed(self, trigger, repository, clock):
        """Test a confirmed prompt closes and records the month."""
        seed_ledger(repository, USER, make_txn(date(2025, 1, 31)), make_txn(date(2025, 1, 20)))
        clock.today = FEB_1
        asked = []

        def confirm(month):
            asked.append(month)
            return True

        result = run(trigger.run(USER, confirm=confirm))

        assert asked == ["2025-01"]
        assert result.day_close.period == "2025-01-31"
        assert result.month_close.closed
        archive = run(repository.get_monthly_archive(USER, "2025-01"))
        assert archive.stats.transaction_count == 2
        assert "2025-01" in run(repository.get_markers(USER)).closed_months

    def test_async_confirm_callback(self, trigger, repository, clock):
        """Test the confirm callback may be a coroutine function."""
        seed_ledger(repository, USER, make_txn(date(2025, 1, 20)))
        clock.today = FEB_1

        async def confirm(month):
            return True

        result = run(trigger.run(USER, confirm=confirm))
        assert result.month_close.closed

    def test_confirmed_empty_month_still_recorded(self, trigger, repository, clock):
        """Test a confirmed close of an empty month marks it closed."""
        clock.today = FEB_1
        result = run(trigger.run(USER, confirm=lambda month: True))
        assert not result.month_close.closed
        assert "2025-01" in run(repository.get_markers(USER)).closed_months

    def test_declined_month_close(self, trigger, repository, clock, audit_storage):
        """Test a declined prompt records nothing and asks again next session."""
        seed_ledger(repository, USER, make_txn(date(2025, 1, 20), TransactionType.INCOME))
        clock.today = FEB_1

        result = run(trigger.run(USER, confirm=lambda month: False))

        assert result.month_close_declined
        assert run(repository.get_monthly_archive(USER, "2025-01")) is None
        assert "2025-01" not in run(repository.get_markers(USER)).closed_months
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.MONTH_CLOSE_DECLINED in types

        again = run(trigger.run(USER))
        assert again.states == [BoundaryState.MONTH_BOUNDARY_CROSSED]
        assert again.month_close_due == "2025-01"

    def test_existing_archive_suppresses_prompt(self, trigger, engine, repository, clock):
        """Test a month archived manually is not proposed again."""
        seed_ledger(repository, USER, make_txn(date(2025, 1, 20)))
        run(engine.close_month(USER, "2025-01"))
        markers = run(repository.get_markers(USER))
        markers.closed_months.clear()
        run(repository.save_markers(USER, markers))
        clock.today = FEB_1

        result = run(trigger.run(USER, confirm=lambda month: pytest.fail("asked")))

        assert BoundaryState.MONTH_BOUNDARY_CROSSED not in result.states

    def test_reports_fallback_clock(self, trigger, clock):
        """Test a fallback reading is surfaced on the result."""
        clock.is_fallback = True
        result = run(trigger.run(USER))
        assert result.used_fallback_clock

    def test_audits_boundary_check(self, trigger, audit_storage):
        """Test every run records a BOUNDARY_CHECKED event."""
        run(trigger.run(USER))
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.BOUNDARY_CHECKED in types

    def test_result_carries_correlation_id(self, trigger):
        """Test the result exposes the correlation ID its events were logged under."""
        correlation_id = uuid4()
        result = run(trigger.run(USER, correlation_id=correlation_id))
        assert result.correlation_id == correlation_id


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
