"""
Aggregator

Pure statistics over a batch of transactions.

DESIGN DECISION: The aggregator is order independent. Every total is a
Decimal sum (exact, so no float drift between runs), and a category
that mixes entry types reports the first type in enum order rather
than whichever entry happened to come first.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from src.models.ledger import (
    ZERO,
    CategoryStat,
    DailyAverage,
    DailySummaryEntry,
    MonthlyStats,
    PeriodSummary,
    Transaction,
    TransactionType,
)


CENT = Decimal("0.01")

_TYPE_ORDER = {t: i for i, t in enumerate(TransactionType)}


def _average(total: Decimal, days: int) -> Decimal:
    if days == 0:
        return ZERO
    return (total / days).quantize(CENT, rounding=ROUND_HALF_UP)


def summarize(transactions: Iterable[Transaction]) -> PeriodSummary:
    """
    Compute totals, category stats and daily averages.

    Args:
        transactions: Any iterable of transactions; not modified

    Returns:
        PeriodSummary where total_spending = fixed + expense and
        balance = income - spending
    """
    totals = {t: ZERO for t in TransactionType}
    categories: dict[str, dict] = {}
    days = set()
    count = 0

    for txn in transactions:
        count += 1
        totals[txn.type] += txn.amount
        days.add(txn.date)

        entry = categories.setdefault(
            txn.category, {"amount": ZERO, "count": 0, "types": set()}
        )
        entry["amount"] += txn.amount
        entry["count"] += 1
        entry["types"].add(txn.type)

    total_income = totals[TransactionType.INCOME]
    total_fixed = totals[TransactionType.FIXED_EXPENSE]
    total_expense = totals[TransactionType.EXPENSE]
    total_spending = total_fixed + total_expense

    category_stats = {
        name: CategoryStat(
            amount=entry["amount"],
            count=entry["count"],
            type=min(entry["types"], key=_TYPE_ORDER.__getitem__),
        )
        for name, entry in sorted(categories.items())
    }

    return PeriodSummary(
        total_income=total_income,
        total_fixed_expense=total_fixed,
        total_expense=total_expense,
        total_spending=total_spending,
        balance=total_income - total_spending,
        transaction_count=count,
        days_count=len(days),
        category_stats=category_stats,
        daily_average=DailyAverage(
            income=_average(total_income, len(days)),
            spending=_average(total_spending, len(days)),
        ),
    )


def group_by_type(transactions: Iterable[Transaction]) -> dict[TransactionType, list[Transaction]]:
    """Entries split by type, every type present (possibly empty), input order kept."""
    groups: dict[TransactionType, list[Transaction]] = {t: [] for t in TransactionType}
    for txn in transactions:
        groups[txn.type].append(txn)
    return groups


def build_monthly_stats(
    transactions: Iterable[Transaction],
    daily_summaries: Iterable[DailySummaryEntry],
) -> MonthlyStats:
    """Month-wide summary plus the per-day breakdown, sorted by date."""
    summaries = sorted(daily_summaries, key=lambda entry: entry.date)
    base = summarize(transactions)
    return MonthlyStats(
        **base.model_dump(),
        daily_summaries=summaries,
        daily_archive_count=len(summaries),
    )
