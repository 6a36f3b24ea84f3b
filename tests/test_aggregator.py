"""
Tests for the aggregator.
"""

import random
from datetime import date
from decimal import Decimal

import pytest

from src.closing import build_monthly_stats, group_by_type, merge_by_id, summarize
from src.models.ledger import DailySummaryEntry, TransactionType

from tests.conftest import make_txn


JAN_5 = date(2025, 1, 5)
JAN_6 = date(2025, 1, 6)


class TestSummarize:
    """Tests for PeriodSummary computation."""

    def test_empty_batch(self):
        """Test an empty batch gives an all-zero summary."""
        summary = summarize([])
        assert summary.transaction_count == 0
        assert summary.days_count == 0
        assert summary.balance == Decimal("0")
        assert summary.daily_average.income == Decimal("0")
        assert summary.category_stats == {}

    def test_income_and_expense_day(self):
        """Test the totals for one day with an expense and an income."""
        summary = summarize([
            make_txn(JAN_5, TransactionType.EXPENSE, "100"),
            make_txn(JAN_5, TransactionType.INCOME, "500", category="Salary"),
        ])
        assert summary.total_income == Decimal("500")
        assert summary.total_expense == Decimal("100")
        assert summary.total_fixed_expense == Decimal("0")
        assert summary.total_spending == Decimal("100")
        assert summary.balance == Decimal("400")
        assert summary.transaction_count == 2
        assert summary.days_count == 1

    def test_spending_and_balance_identities(self):
        """Test spending = fixed + expense and balance = income - spending."""
        batch = [
            make_txn(JAN_5, TransactionType.INCOME, "1000.00", category="Salary"),
            make_txn(JAN_5, TransactionType.FIXED_EXPENSE, "650.00", category="Rent"),
            make_txn(JAN_6, TransactionType.EXPENSE, "12.35"),
            make_txn(JAN_6, TransactionType.EXPENSE, "0.10"),
        ]
        summary = summarize(batch)
        assert summary.total_spending == summary.total_fixed_expense + summary.total_expense
        assert summary.balance == summary.total_income - summary.total_spending
        assert summary.total_spending == Decimal("662.45")
        assert summary.balance == Decimal("337.55")

    def test_category_counts_sum_to_transaction_count(self):
        """Test category stats partition the batch."""
        batch = [
            make_txn(JAN_5, category="Food"),
            make_txn(JAN_5, category="Food"),
            make_txn(JAN_6, category="Transport"),
            make_txn(JAN_6, TransactionType.INCOME, category="Salary"),
        ]
        summary = summarize(batch)
        assert sum(s.count for s in summary.category_stats.values()) == summary.transaction_count
        assert summary.category_stats["Food"].count == 2
        assert summary.category_stats["Food"].amount == Decimal("20.00")
        assert list(summary.category_stats) == ["Food", "Salary", "Transport"]

    def test_daily_average_over_active_days(self):
        """Test averages divide by distinct days, rounded half up."""
        batch = [
            make_txn(JAN_5, TransactionType.EXPENSE, "10.00"),
            make_txn(JAN_5, TransactionType.EXPENSE, "0.01"),
            make_txn(date(2025, 1, 7), TransactionType.EXPENSE, "0.00"),
        ]
        summary = summarize(batch)
        assert summary.days_count == 2
        # 10.01 / 2 = 5.005 -> 5.01
        assert summary.daily_average.spending == Decimal("5.01")
        assert summary.daily_average.income == Decimal("0.00")

    def test_order_independent(self):
        """Test shuffling the input does not change the summary."""
        batch = [
            make_txn(JAN_5, TransactionType.INCOME, "3.33", category="Mixed"),
            make_txn(JAN_5, TransactionType.EXPENSE, "1.11", category="Mixed"),
            make_txn(JAN_6, TransactionType.FIXED_EXPENSE, "2.22", category="Mixed"),
            make_txn(JAN_6, TransactionType.EXPENSE, "4.44", category="Food"),
        ]
        expected = summarize(batch)
        rng = random.Random(7)
        for _ in range(5):
            shuffled = batch[:]
            rng.shuffle(shuffled)
            assert summarize(shuffled) == expected

    def test_mixed_category_reports_first_type_in_enum_order(self):
        """Test a category holding several types reports the first enum member."""
        summary = summarize([
            make_txn(JAN_5, TransactionType.EXPENSE, category="Mixed"),
            make_txn(JAN_5, TransactionType.INCOME, category="Mixed"),
        ])
        assert summary.category_stats["Mixed"].type == TransactionType.INCOME


class TestMonthlyStats:
    """Tests for build_monthly_stats and merge_by_id."""

    def test_daily_summaries_sorted_and_counted(self):
        """Test daily summaries are ordered by date."""
        entries = [
            DailySummaryEntry(date=JAN_6, summary=summarize([make_txn(JAN_6)])),
            DailySummaryEntry(date=JAN_5, summary=summarize([make_txn(JAN_5)])),
        ]
        stats = build_monthly_stats([make_txn(JAN_5), make_txn(JAN_6)], entries)
        assert [e.date for e in stats.daily_summaries] == [JAN_5, JAN_6]
        assert stats.daily_archive_count == 2
        assert stats.transaction_count == 2

    def test_merge_by_id_first_occurrence_wins(self):
        """Test duplicates collapse to their first occurrence."""
        a = make_txn(JAN_5, amount="1.00")
        b = make_txn(JAN_5, amount="2.00")
        c = make_txn(JAN_6, amount="3.00")
        merged = merge_by_id([a, b], [b, c], [a])
        assert merged == [a, b, c]


class TestGroupByType:
    """Tests for splitting a ledger by entry type."""

    def test_every_type_present_and_order_kept(self):
        """Test groups keep input order and empty types are still listed."""
        first = make_txn(JAN_5, TransactionType.EXPENSE, "1")
        salary = make_txn(JAN_5, TransactionType.INCOME, "100")
        second = make_txn(JAN_6, TransactionType.EXPENSE, "2")

        groups = group_by_type([first, salary, second])

        assert list(groups) == list(TransactionType)
        assert groups[TransactionType.EXPENSE] == [first, second]
        assert groups[TransactionType.INCOME] == [salary]
        assert groups[TransactionType.FIXED_EXPENSE] == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
