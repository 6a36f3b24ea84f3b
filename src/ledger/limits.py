"""
Spending Limit

Compares the current month's expense spend against a per-user limit.

Only entries of type `expense` count against the limit; fixed expenses
are planned and excluded. Because a daily close prunes expenses from
the live ledger, the month's daily archives are added back in, with
entries de-duplicated by id.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from src.models.ledger import (
    AMOUNT_CEILING,
    ZERO,
    SpendingLimitStatus,
    Transaction,
    TransactionType,
)
from src.ledger.repository import LedgerRepository


CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def expense_total(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions if t.type == TransactionType.EXPENSE), ZERO)


def evaluate_limit(
    month: str,
    limit: Optional[Decimal],
    current_expense: Decimal,
    archived_expense: Decimal = ZERO,
    alert_threshold_percent: int = 90,
) -> SpendingLimitStatus:
    """
    Pure limit check.

    Args:
        month: Month-key the figures belong to
        limit: Configured limit, or None when the user has none
        current_expense: Expense still in the live ledger
        archived_expense: Expense already moved to daily archives
        alert_threshold_percent: Usage at which is_near_limit turns on

    Returns:
        SpendingLimitStatus with usage_percent capped at 100
    """
    total = current_expense + archived_expense
    if not limit or limit <= ZERO:
        return SpendingLimitStatus(
            month=month,
            limit=limit or ZERO,
            total_expense=total,
            current_expense=current_expense,
            archived_expense=archived_expense,
        )

    usage = min(total / limit * HUNDRED, HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return SpendingLimitStatus(
        month=month,
        limit=limit,
        total_expense=total,
        current_expense=current_expense,
        archived_expense=archived_expense,
        remaining=max(limit - total, ZERO),
        over_by=max(total - limit, ZERO),
        usage_percent=usage,
        has_limit=True,
        is_over_limit=total > limit,
        is_near_limit=usage >= alert_threshold_percent,
    )


class SpendingLimitTracker:
    """Stores limits and computes their status from ledger and archives."""

    def __init__(self, repository: LedgerRepository, alert_threshold_percent: int = 90):
        self._repo = repository
        self._threshold = alert_threshold_percent

    async def set_limit(self, username: str, limit: Decimal) -> Decimal:
        if limit < ZERO:
            raise ValueError("Spending limit must not be negative")
        if limit > AMOUNT_CEILING:
            raise ValueError(f"Spending limit must not exceed {AMOUNT_CEILING:,}")
        limit = limit.quantize(CENT, rounding=ROUND_HALF_UP)
        await self._repo.set_spending_limit(username, limit)
        return limit

    async def clear_limit(self, username: str) -> bool:
        return await self._repo.clear_spending_limit(username)

    async def status(self, username: str, month: str) -> SpendingLimitStatus:
        limit = await self._repo.get_spending_limit(username)
        live = await self._repo.load_ledger(username, month)
        live_ids = {t.id for t in live}

        batches = [a.transactions for a in await self._repo.load_daily_archives(username, month)]
        monthly = await self._repo.get_monthly_archive(username, month)
        if monthly:
            # daily archives of a closed month may already be cleaned up
            batches.append(monthly.transactions)

        archived: dict = {}
        for batch in batches:
            for txn in batch:
                if txn.id not in live_ids:
                    archived.setdefault(txn.id, txn)

        return evaluate_limit(
            month=month,
            limit=limit,
            current_expense=expense_total(live),
            archived_expense=expense_total(archived.values()),
            alert_threshold_percent=self._threshold,
        )
