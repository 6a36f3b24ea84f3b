"""
Shared fixtures for the ledger tests.

Everything runs against the in-memory store and a fixed clock;
no test touches the network or Google Sheets.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from src.audit import AuditLogger
from src.closing import BoundaryTrigger, ClosingEngine
from src.ledger import LedgerRepository, SpendingLimitTracker
from src.models.ledger import ClockReading, Transaction, TransactionType
from src.orchestrator import ClosingFlow, LedgerFlow
from src.periods.keys import month_key
from src.reports import ReportGenerator
from src.services.clock import ClockSourceInterface
from src.services.storage import InMemoryAuditStorage, InMemoryKeyValueStore
from src.validation import TransactionValidator


USER = "alice"


class FixedClock(ClockSourceInterface):
    """Clock whose date the test controls."""

    def __init__(self, today: date, is_fallback: bool = False):
        self.today = today
        self.is_fallback = is_fallback

    async def read(self) -> ClockReading:
        return ClockReading(
            date=self.today,
            month_key=month_key(self.today),
            is_fallback=self.is_fallback,
        )


def run(coro):
    """Drive a coroutine from a synchronous test."""
    return asyncio.run(coro)


def make_txn(
    day: date,
    type: TransactionType = TransactionType.EXPENSE,
    amount: str = "10.00",
    category: str = "Food",
    description: Optional[str] = None,
) -> Transaction:
    return Transaction(
        date=day,
        type=type,
        amount=Decimal(amount),
        category=category,
        description=description or f"{type.value} {amount}",
    )


def seed_ledger(repository: LedgerRepository, username: str, *transactions: Transaction) -> None:
    """Append transactions to the ledgers of their own months."""
    by_month: dict[str, list[Transaction]] = {}
    for txn in transactions:
        by_month.setdefault(txn.month_key, []).append(txn)
    for month, batch in by_month.items():
        existing = run(repository.load_ledger(username, month))
        run(repository.save_ledger(username, month, existing + batch))


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(date(2025, 1, 6))


@pytest.fixture
def repository(store) -> LedgerRepository:
    return LedgerRepository(store)


@pytest.fixture
def reports(repository) -> ReportGenerator:
    return ReportGenerator(repository)


@pytest.fixture
def engine(repository, clock, reports, audit_logger) -> ClosingEngine:
    return ClosingEngine(repository, clock, reports, audit_logger=audit_logger)


@pytest.fixture
def trigger(engine, repository, clock, audit_logger) -> BoundaryTrigger:
    return BoundaryTrigger(engine, repository, clock, audit_logger)


@pytest.fixture
def validator() -> TransactionValidator:
    return TransactionValidator(max_amount=Decimal("100000"), future_date_tolerance_days=1)


@pytest.fixture
def ledger_flow(repository, clock, validator, audit_logger) -> LedgerFlow:
    return LedgerFlow(
        repository,
        clock,
        validator=validator,
        limits=SpendingLimitTracker(repository),
        audit_logger=audit_logger,
    )


@pytest.fixture
def closing_flow(engine, trigger, reports, repository, audit_logger) -> ClosingFlow:
    return ClosingFlow(engine, trigger, reports, repository, audit_logger)
