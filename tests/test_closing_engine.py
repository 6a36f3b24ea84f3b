"""
Tests for the closing engine.

All closes run against the in-memory store; store failures are
injected with InMemoryKeyValueStore.fail_writes_for / fail_reads.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.closing import ClosingEngine
from src.models.audit import AuditEventType
from src.models.ledger import CloseOutcome, TransactionType
from src.periods.keys import StoreKeys
from src.services.storage import StoreReadError, StoreWriteError

from tests.conftest import USER, FixedClock, make_txn, run, seed_ledger


JAN_5 = date(2025, 1, 5)
JAN_6 = date(2025, 1, 6)


class TestCloseDay:
    """Tests for ClosingEngine.close_day."""

    def test_income_retained_expense_pruned(self, engine, repository):
        """Test closing a day with an expense and an income."""
        expense = make_txn(JAN_5, TransactionType.EXPENSE, "100")
        income = make_txn(JAN_5, TransactionType.INCOME, "500", category="Salary")
        seed_ledger(repository, USER, expense, income)

        result = run(engine.close_day(USER, JAN_5))

        assert result.outcome == CloseOutcome.CLOSED
        assert result.removed_count == 1
        assert result.retained_count == 1

        archive = run(repository.get_daily_archive(USER, JAN_5))
        assert archive.summary.total_income == Decimal("500")
        assert archive.summary.total_expense == Decimal("100")
        assert archive.summary.total_spending == Decimal("100")
        assert archive.summary.balance == Decimal("400")
        assert archive.summary.transaction_count == 2

        ledger = run(repository.load_ledger(USER, "2025-01"))
        assert [t.id for t in ledger] == [income.id]

    def test_only_target_day_is_touched(self, engine, repository):
        """Test entries of other days stay in the ledger."""
        target = make_txn(JAN_5)
        other = make_txn(JAN_6)
        seed_ledger(repository, USER, target, other)

        run(engine.close_day(USER, JAN_5))

        ledger = run(repository.load_ledger(USER, "2025-01"))
        assert [t.id for t in ledger] == [other.id]
        archive = run(repository.get_daily_archive(USER, JAN_5))
        assert [t.id for t in archive.transactions] == [target.id]

    def test_every_archived_entry_belongs_to_its_day(self, engine, repository):
        """Test a daily archive only ever holds its own date."""
        seed_ledger(repository, USER, make_txn(JAN_5), make_txn(JAN_6), make_txn(date(2025, 1, 4)))
        run(engine.close_day(USER, JAN_5))
        archive = run(repository.get_daily_archive(USER, JAN_5))
        assert all(t.date == JAN_5 for t in archive.transactions)

    def test_fixed_expense_is_pruned(self, engine, repository):
        """Test fixed expenses leave the ledger like other spending."""
        seed_ledger(repository, USER, make_txn(JAN_5, TransactionType.FIXED_EXPENSE, "650"))
        result = run(engine.close_day(USER, JAN_5))
        assert result.removed_count == 1
        assert run(repository.load_ledger(USER, "2025-01")) == []

    def test_nothing_to_close(self, engine, repository, store):
        """Test an empty day writes nothing."""
        result = run(engine.close_day(USER, JAN_5))
        assert result.outcome == CloseOutcome.NOTHING_TO_CLOSE
        assert result.message == "No transactions to close for 2025-01-05"
        assert store.keys() == []

    def test_defaults_to_yesterday(self, engine, repository, clock):
        """Test the target day defaults to the clock's yesterday."""
        seed_ledger(repository, USER, make_txn(JAN_5))
        clock.today = JAN_6
        result = run(engine.close_day(USER))
        assert result.period == "2025-01-05"
        assert result.closed

    def test_yesterday_across_month_boundary(self, engine, repository, clock):
        """Test closing Jan 31 from Feb 1 reads January's ledger."""
        jan_31 = make_txn(date(2025, 1, 31))
        seed_ledger(repository, USER, jan_31)
        clock.today = date(2025, 2, 1)

        result = run(engine.close_day(USER))

        assert result.period == "2025-01-31"
        assert run(repository.load_ledger(USER, "2025-01")) == []

    def test_second_close_is_noop(self, engine, repository, store):
        """Test re-running a close with no new entries changes nothing."""
        seed_ledger(repository, USER, make_txn(JAN_5), make_txn(JAN_5, TransactionType.INCOME))
        run(engine.close_day(USER, JAN_5))
        snapshot = {key: run(store.get(key)) for key in store.keys()}

        result = run(engine.close_day(USER, JAN_5))

        assert result.outcome == CloseOutcome.NOTHING_TO_CLOSE
        assert {key: run(store.get(key)) for key in store.keys()} == snapshot

    def test_reclose_merges_new_entries(self, engine, repository):
        """Test entries added after a close are merged into the archive."""
        income = make_txn(JAN_5, TransactionType.INCOME, "500")
        first = make_txn(JAN_5, amount="1.00")
        seed_ledger(repository, USER, income, first)
        run(engine.close_day(USER, JAN_5))

        late = make_txn(JAN_5, amount="2.00")
        seed_ledger(repository, USER, late)
        result = run(engine.close_day(USER, JAN_5))

        archive = run(repository.get_daily_archive(USER, JAN_5))
        assert {t.id for t in archive.transactions} == {income.id, first.id, late.id}
        assert archive.summary.transaction_count == 3
        assert result.removed_count == 1
        assert len(run(repository.get_deletion_log(USER, JAN_5))) == 2

    def test_deletion_record_lists_pruned_entries(self, engine, repository):
        """Test the deletion log records what was removed."""
        expense = make_txn(JAN_5)
        seed_ledger(repository, USER, expense, make_txn(JAN_5, TransactionType.INCOME))
        run(engine.close_day(USER, JAN_5))

        records = run(repository.get_deletion_log(USER, JAN_5))
        assert len(records) == 1
        assert records[0].removed_count == 1
        assert [t.id for t in records[0].transactions] == [expense.id]

    def test_archive_write_failure_leaves_ledger_intact(self, engine, repository, store):
        """Test nothing is pruned when the archive cannot be written."""
        seed_ledger(repository, USER, make_txn(JAN_5), make_txn(JAN_5))
        store.fail_writes_for("daily-archive:")

        with pytest.raises(StoreWriteError):
            run(engine.close_day(USER, JAN_5))

        assert len(run(repository.load_ledger(USER, "2025-01"))) == 2
        assert run(repository.get_daily_archive(USER, JAN_5)) is None

    def test_prune_failure_then_retry_completes(self, engine, repository, store):
        """Test a failed prune leaves the archive and the retry finishes it."""
        expense = make_txn(JAN_5)
        seed_ledger(repository, USER, expense)
        store.fail_writes_for("transactions:")

        with pytest.raises(StoreWriteError):
            run(engine.close_day(USER, JAN_5))

        assert run(repository.get_daily_archive(USER, JAN_5)) is not None
        assert len(run(repository.load_ledger(USER, "2025-01"))) == 1

        store.clear_failures()
        result = run(engine.close_day(USER, JAN_5))

        assert result.closed
        assert result.removed_count == 1
        assert run(repository.load_ledger(USER, "2025-01")) == []
        archive = run(repository.get_daily_archive(USER, JAN_5))
        assert [t.id for t in archive.transactions] == [expense.id]

    def test_read_failure_propagates(self, engine, store):
        """Test store read failures surface as StoreReadError."""
        store.fail_reads()
        with pytest.raises(StoreReadError):
            run(engine.close_day(USER, JAN_5))

    def test_audits_day_closed(self, engine, repository, audit_storage):
        """Test a close emits a DAY_CLOSED event."""
        seed_ledger(repository, USER, make_txn(JAN_5))
        run(engine.close_day(USER, JAN_5))
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.DAY_CLOSED in types


class TestDailyStatus:
    """Tests for ClosingEngine.get_daily_status."""

    def test_status_before_and_after_close(self, engine, repository):
        """Test is_archived flips once the day is closed."""
        seed_ledger(repository, USER, make_txn(JAN_5))

        before = run(engine.get_daily_status(USER, JAN_5))
        assert not before.is_archived
        assert before.archive_key == "daily-archive:alice:2025-01-05"

        run(engine.close_day(USER, JAN_5))
        after = run(engine.get_daily_status(USER, JAN_5))
        assert after.is_archived
        assert after.transaction_count == 1
        assert after.archived_at is not None


class TestCloseMonth:
    """Tests for ClosingEngine.close_month."""

    def test_nothing_to_close_writes_no_archive(self, engine, repository, store):
        """Test an empty month is a no-op."""
        result = run(engine.close_month(USER, "2025-02"))
        assert result.outcome == CloseOutcome.NOTHING_TO_CLOSE
        assert run(repository.get_monthly_archive(USER, "2025-02")) is None
        assert store.keys() == []

    def test_month_close_merges_archives_and_ledger(self, engine, repository, store):
        """Test the monthly archive holds daily archives plus remaining ledger."""
        salary = make_txn(JAN_5, TransactionType.INCOME, "500", category="Salary")
        lunch = make_txn(JAN_5, TransactionType.EXPENSE, "100")
        rent = make_txn(JAN_6, TransactionType.FIXED_EXPENSE, "300", category="Rent")
        late = make_txn(date(2025, 1, 31), TransactionType.EXPENSE, "20")
        seed_ledger(repository, USER, salary, lunch, rent, late)
        run(engine.close_day(USER, JAN_5))
        run(engine.close_day(USER, JAN_6))

        result = run(engine.close_month(USER, "2025-01"))

        assert result.closed
        archive = run(repository.get_monthly_archive(USER, "2025-01"))
        assert {t.id for t in archive.transactions} == {salary.id, lunch.id, rent.id, late.id}
        assert archive.month_name == "January 2025"
        assert archive.stats.transaction_count == 4
        assert archive.stats.total_income == Decimal("500")
        assert archive.stats.total_spending == Decimal("420")
        assert archive.stats.daily_archive_count == 2
        assert [e.date for e in archive.stats.daily_summaries] == [JAN_5, JAN_6]
        assert result.report_key == "monthly-report:alice:2025-01"
        assert run(repository.get_report(result.report_key)) is not None

    def test_every_archived_entry_belongs_to_month(self, engine, repository):
        """Test February entries never land in January's archive."""
        seed_ledger(repository, USER, make_txn(JAN_5), make_txn(date(2025, 2, 1)))
        run(engine.close_month(USER, "2025-01"))
        archive = run(repository.get_monthly_archive(USER, "2025-01"))
        assert all(t.month_key == "2025-01" for t in archive.transactions)

    def test_cleanup_removes_daily_archives(self, engine, repository, store):
        """Test daily archives are deleted after the month is archived."""
        seed_ledger(repository, USER, make_txn(JAN_5), make_txn(JAN_6))
        run(engine.close_day(USER, JAN_5))
        run(engine.close_day(USER, JAN_6))

        result = run(engine.close_month(USER, "2025-01"))

        assert result.cleaned_up_count == 2
        assert run(repository.list_daily_archive_keys(USER, "2025-01")) == []

    def test_cleanup_can_be_disabled(self, repository, clock, reports):
        """Test daily archives are kept when cleanup is off."""
        engine = ClosingEngine(repository, clock, reports, cleanup_daily_archives=False)
        seed_ledger(repository, USER, make_txn(JAN_5))
        run(engine.close_day(USER, JAN_5))

        result = run(engine.close_month(USER, "2025-01"))

        assert result.cleaned_up_count == 0
        assert len(run(repository.list_daily_archive_keys(USER, "2025-01"))) == 1

    def test_cleanup_failure_does_not_fail_close(self, engine, repository, store, audit_storage):
        """Test a failing cleanup is logged but the close succeeds."""
        seed_ledger(repository, USER, make_txn(JAN_5))
        run(engine.close_day(USER, JAN_5))
        store.fail_writes_for("daily-archive:")

        result = run(engine.close_month(USER, "2025-01"))

        assert result.closed
        assert result.cleaned_up_count == 0
        assert run(repository.get_monthly_archive(USER, "2025-01")) is not None
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.STORE_FAILURE in types

    def test_reclose_after_cleanup_keeps_transactions(self, engine, repository):
        """Test re-closing a cleaned-up month keeps the earlier archive's entries."""
        archived = make_txn(JAN_5)
        seed_ledger(repository, USER, archived)
        run(engine.close_day(USER, JAN_5))
        run(engine.close_month(USER, "2025-01"))

        straggler = make_txn(date(2025, 1, 20))
        seed_ledger(repository, USER, straggler)
        run(engine.close_month(USER, "2025-01"))

        archive = run(repository.get_monthly_archive(USER, "2025-01"))
        assert {t.id for t in archive.transactions} == {archived.id, straggler.id}
        assert [e.date for e in archive.stats.daily_summaries] == [JAN_5]

    def test_month_close_is_idempotent(self, engine, repository):
        """Test closing the same month twice gives the same contents."""
        seed_ledger(repository, USER, make_txn(JAN_5), make_txn(JAN_6, TransactionType.INCOME))
        run(engine.close_month(USER, "2025-01"))
        first = run(repository.get_monthly_archive(USER, "2025-01"))

        run(engine.close_month(USER, "2025-01"))
        second = run(repository.get_monthly_archive(USER, "2025-01"))

        assert [t.id for t in first.transactions] == [t.id for t in second.transactions]
        assert first.stats == second.stats

    def test_defaults_to_previous_month(self, repository, reports):
        """Test the target month defaults to the month before the clock's."""
        engine = ClosingEngine(repository, FixedClock(date(2025, 2, 1)), reports)
        seed_ledger(repository, USER, make_txn(JAN_5))
        result = run(engine.close_month(USER))
        assert result.period == "2025-01"
        assert result.message.startswith("Closed January 2025")

    def test_marks_month_closed(self, engine, repository):
        """Test the month is added to the closed-month markers."""
        seed_ledger(repository, USER, make_txn(JAN_5))
        run(engine.close_month(USER, "2025-01"))
        markers = run(repository.get_markers(USER))
        assert "2025-01" in markers.closed_months

    def test_invalid_month_rejected(self, engine):
        """Test malformed month keys raise ValueError."""
        with pytest.raises(ValueError):
            run(engine.close_month(USER, "2025-13"))

    def test_users_are_isolated(self, engine, repository):
        """Test one user's close never touches another user's keys."""
        seed_ledger(repository, USER, make_txn(JAN_5))
        seed_ledger(repository, "bob", make_txn(JAN_5))

        run(engine.close_day(USER, JAN_5))

        assert len(run(repository.load_ledger("bob", "2025-01"))) == 1
        assert run(repository.get_daily_archive("bob", JAN_5)) is None
        assert StoreKeys.daily_archive(USER, JAN_5) in repository.store.keys()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
