"""Ledger data access and spending limits."""

from src.ledger.repository import LedgerRepository
from src.ledger.limits import SpendingLimitTracker, evaluate_limit, expense_total

__all__ = [
    "LedgerRepository",
    "SpendingLimitTracker",
    "evaluate_limit",
    "expense_total",
]
