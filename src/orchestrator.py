"""
Main Orchestrator for the Personal Ledger

This module ties together all the components and defines the
user-facing flows for:
1. Ledger edits (add, delete, list, reset) and the spending limit
2. Closing (day, month, session boundary check) and reports
3. Transaction search

DESIGN DECISION: Every flow returns an OperationResult envelope
({success, data} or {success, error}) instead of raising. Only the
expected failure kinds are converted:
- StorageError -> "storage unavailable" style message, audited
- InvalidTransactionError -> the validation messages, audited
- ValueError from a malformed username, month or day
Anything else is a bug and propagates.

This is the "glue" that ensures the closing engine only ever sees
validated entries and that every step is audited.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.closing import BoundaryTrigger, ClosingEngine, summarize
from src.closing.boundaries import ConfirmCallback
from src.config import get_settings
from src.ledger import LedgerRepository, SpendingLimitTracker
from src.models.ledger import ClockReading, OperationResult, TransactionDraft, TransactionQuery
from src.periods.keys import (
    KEY_SEPARATOR,
    MONTHLY_REPORT_NAMESPACE,
    parse_day,
    validate_month_key,
    validate_username,
)
from src.queries import TransactionQueryExecutor
from src.reports import ReportGenerator, render_report_text
from src.services.clock import ClockSourceInterface, create_clock
from src.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    KeyValueStoreInterface,
    StorageError,
)
from src.validation import InvalidTransactionError, TransactionValidator, parse_amount


logger = structlog.get_logger("ledger.orchestrator")


DayInput = Union[date, str, None]


class _Flow:
    """Shared failure handling for the flows below."""

    def __init__(self, audit_logger: Optional[AuditLogger]):
        self._audit_logger = audit_logger

    async def _storage_failed(
        self,
        operation: str,
        error: StorageError,
        username: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        logger.error("operation_failed", operation=operation, username=username, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_store_failure(
                operation, str(error), username, correlation_id
            )
        return OperationResult.fail(
            f"Could not {operation}: storage is unavailable ({error}). Please try again."
        )


def _optional_day(value: DayInput) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_day(value)


class LedgerFlow(_Flow):
    """
    Orchestrates edits to the live ledger.

    Flow for a new entry:
    1. Validate → reject with issues, or build a Transaction
    2. Append to the ledger of the entry's own month
    3. Audit
    """

    def __init__(
        self,
        repository: LedgerRepository,
        clock: ClockSourceInterface,
        validator: Optional[TransactionValidator] = None,
        limits: Optional[SpendingLimitTracker] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(audit_logger)
        self._repo = repository
        self._clock = clock
        self._validator = validator or TransactionValidator()
        self._limits = limits or SpendingLimitTracker(repository)
        self._query_executor = TransactionQueryExecutor(repository)

    async def _current_month(self) -> str:
        return (await self._clock.read()).month_key

    async def read_clock(self) -> ClockReading:
        """Today's date from the ledger's clock (used to prefill forms)."""
        return await self._clock.read()

    async def get_month_summary(
        self,
        username: str,
        month: Optional[str] = None,
    ) -> OperationResult:
        """Running totals of a month's live ledger (income, fixed, expense, balance)."""
        try:
            month = validate_month_key(month) if month else await self._current_month()
            ledger = await self._repo.load_ledger(username, month)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("load the ledger", e, username)
        return OperationResult.ok(summarize(ledger))

    async def add_transaction(
        self,
        username: str,
        draft: TransactionDraft,
    ) -> OperationResult:
        """
        Validate and store a new entry.

        Returns:
            OperationResult with the Transaction; any semantic warnings
            are joined into the message
        """
        try:
            username = validate_username(username)
        except ValueError as e:
            return OperationResult.fail(str(e))

        reading = await self._clock.read()
        try:
            result = self._validator.create_transaction(draft, today=reading.date)
        except InvalidTransactionError as e:
            if self._audit_logger:
                await self._audit_logger.log_transaction_rejected(
                    username, [issue.model_dump() for issue in e.issues]
                )
            return OperationResult.fail(self._validator.get_user_friendly_summary(e.result))

        txn = result.transaction
        try:
            ledger = await self._repo.load_ledger(username, txn.month_key)
            ledger.append(txn)
            await self._repo.save_ledger(username, txn.month_key, ledger)
        except StorageError as e:
            return await self._storage_failed("save the transaction", e, username)

        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                username=username,
                transaction_id=txn.id,
                transaction_type=txn.type.value,
                amount=txn.amount,
                day=txn.date,
            )

        message = "Transaction added"
        if result.warnings:
            message += ". Please verify: " + "; ".join(result.warnings)
        return OperationResult.ok(txn, message)

    async def delete_transaction(
        self,
        username: str,
        transaction_id: UUID,
        month: Optional[str] = None,
    ) -> OperationResult:
        """Remove one entry from a month's ledger (default: current month)."""
        try:
            month = validate_month_key(month) if month else await self._current_month()
            ledger = await self._repo.load_ledger(username, month)
            remaining = [t for t in ledger if t.id != transaction_id]
            if len(remaining) == len(ledger):
                return OperationResult.fail(f"Transaction {transaction_id} not found in {month}")
            await self._repo.save_ledger(username, month, remaining)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("delete the transaction", e, username)

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(username, transaction_id, month)
        return OperationResult.ok({"id": str(transaction_id), "month": month}, "Transaction deleted")

    async def list_transactions(
        self,
        username: str,
        month: Optional[str] = None,
    ) -> OperationResult:
        """A month's live ledger, newest first."""
        try:
            month = validate_month_key(month) if month else await self._current_month()
            ledger = await self._repo.load_ledger(username, month)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("load the ledger", e, username)

        ledger.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        return OperationResult.ok(ledger)

    async def reset_month(
        self,
        username: str,
        month: Optional[str] = None,
    ) -> OperationResult:
        """
        Clear a month's live ledger.

        Archives, reports and the spending limit are left untouched.
        """
        try:
            month = validate_month_key(month) if month else await self._current_month()
            removed = len(await self._repo.load_ledger(username, month))
            await self._repo.clear_ledger(username, month)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("reset the ledger", e, username)

        if self._audit_logger:
            await self._audit_logger.log_month_reset(username, month, removed)
        return OperationResult.ok(
            {"month": month, "removed_count": removed},
            f"Ledger for {month} reset ({removed} entries removed)",
        )

    async def set_spending_limit(self, username: str, amount) -> OperationResult:
        limit = parse_amount(amount)
        if limit is None or limit < 0:
            return OperationResult.fail("Spending limit must be a non-negative number")
        try:
            limit = await self._limits.set_limit(username, limit)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("save the spending limit", e, username)

        if self._audit_logger:
            await self._audit_logger.log_spending_limit_set(username, limit)
        return OperationResult.ok({"limit": str(limit)}, "Spending limit saved")

    async def clear_spending_limit(self, username: str) -> OperationResult:
        try:
            await self._limits.clear_limit(username)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("clear the spending limit", e, username)

        if self._audit_logger:
            await self._audit_logger.log_spending_limit_cleared(username)
        return OperationResult.ok(message="Spending limit cleared")

    async def get_spending_limit_status(
        self,
        username: str,
        month: Optional[str] = None,
    ) -> OperationResult:
        try:
            month = validate_month_key(month) if month else await self._current_month()
            status = await self._limits.status(username, month)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("check the spending limit", e, username)
        return OperationResult.ok(status)

    async def search_transactions(
        self,
        username: str,
        query: TransactionQuery,
    ) -> OperationResult:
        """Search every month (and optionally the archives)."""
        try:
            validate_username(username)
        except ValueError as e:
            return OperationResult.fail(str(e))

        result = await self._query_executor.execute(username, query)
        if not result.success:
            return OperationResult.fail(result.error_message or "Search failed")
        return OperationResult.ok(result)


class ClosingFlow(_Flow):
    """
    Orchestrates period closing and report access.

    Flow for a session:
    1. Read the clock (falls back to device time, never fails)
    2. Close yesterday if the day marker is stale
    3. Report, or with confirmation perform, a due month close
    4. Audit everything under one correlation ID
    """

    def __init__(
        self,
        engine: ClosingEngine,
        trigger: BoundaryTrigger,
        reports: ReportGenerator,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(audit_logger)
        self._engine = engine
        self._trigger = trigger
        self._reports = reports
        self._repo = repository

    async def close_day(
        self,
        username: str,
        target_date: DayInput = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Close one day (default: yesterday)."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            result = await self._engine.close_day(
                validate_username(username), _optional_day(target_date), correlation_id
            )
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("close the day", e, username, correlation_id)
        return OperationResult.ok(result, result.message)

    async def close_month(
        self,
        username: str,
        target_month: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Close one month (default: the previous month)."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            result = await self._engine.close_month(
                validate_username(username), target_month or None, correlation_id
            )
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("close the month", e, username, correlation_id)
        return OperationResult.ok(result, result.message)

    async def get_daily_status(
        self,
        username: str,
        target_date: DayInput = None,
    ) -> OperationResult:
        try:
            status = await self._engine.get_daily_status(
                validate_username(username), _optional_day(target_date)
            )
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("check the daily status", e, username)
        return OperationResult.ok(status)

    async def run_session_checks(
        self,
        username: str,
        confirm: Optional[ConfirmCallback] = None,
    ) -> OperationResult:
        """
        Run the automatic boundary checks once for a session.

        Args:
            username: Ledger owner
            confirm: Asked before closing the previous month; when None
                a due month close is only reported
        """
        correlation_id = create_correlation_id()
        try:
            result = await self._trigger.run(
                validate_username(username), confirm, correlation_id
            )
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed(
                "run the period checks", e, username, correlation_id
            )

        message = None
        if result.used_fallback_clock:
            message = "Time server unavailable; using this device's date"
        return OperationResult.ok(result, message)

    async def list_monthly_reports(self, username: str) -> OperationResult:
        """Every stored report, newest month first."""
        try:
            listings = await self._reports.list_reports(validate_username(username))
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("list the reports", e, username)
        return OperationResult.ok(listings)

    async def get_monthly_report_detail(self, key: str) -> OperationResult:
        if not key.startswith(MONTHLY_REPORT_NAMESPACE + KEY_SEPARATOR):
            return OperationResult.fail(f"Report not found: {key}")
        try:
            report = await self._reports.get_report(key)
        except StorageError as e:
            return await self._storage_failed("load the report", e)
        if report is None:
            return OperationResult.fail(f"Report not found: {key}")
        return OperationResult.ok(report, render_report_text(report))

    async def get_report_history(self, key: str) -> OperationResult:
        """Audit events about one stored report (generated, regenerated)."""
        if not self._audit_logger:
            return OperationResult.ok([])
        try:
            events = await self._audit_logger.get_entity_history("monthly_report", key)
        except StorageError as e:
            return await self._storage_failed("load the report history", e)
        return OperationResult.ok(events)

    async def get_session_trail(self, correlation_id: UUID) -> OperationResult:
        """Everything one session check did, in order."""
        if not self._audit_logger:
            return OperationResult.ok([])
        try:
            events = await self._audit_logger.get_session_trail(correlation_id)
        except StorageError as e:
            return await self._storage_failed("load the session trail", e)
        return OperationResult.ok(events)

    async def get_recent_activity(self, username: str, limit: int = 50) -> OperationResult:
        """The user's latest audit events, newest first."""
        try:
            username = validate_username(username)
        except ValueError as e:
            return OperationResult.fail(str(e))
        if not self._audit_logger:
            return OperationResult.ok([])
        try:
            events = await self._audit_logger.get_recent_activity(username, limit)
        except StorageError as e:
            return await self._storage_failed("load the activity log", e, username)
        return OperationResult.ok(events)

    async def get_deletion_log(self, username: str, target_date: DayInput) -> OperationResult:
        """Entries pruned from the ledger when a day was closed."""
        try:
            day = _optional_day(target_date)
            if day is None:
                return OperationResult.fail("A date is required")
            records = await self._repo.get_deletion_log(validate_username(username), day)
        except ValueError as e:
            return OperationResult.fail(str(e))
        except StorageError as e:
            return await self._storage_failed("load the deletion log", e, username)
        return OperationResult.ok(records)


def _create_storage(
    backend: str,
) -> tuple[KeyValueStoreInterface, Optional[AuditStorageInterface]]:
    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        return (
            GoogleSheetsKeyValueStore(sheets_client),
            GoogleSheetsAuditStorage(sheets_client),
        )
    return InMemoryKeyValueStore(), InMemoryAuditStorage()


def create_app_components(
    store: Optional[KeyValueStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    clock: Optional[ClockSourceInterface] = None,
) -> tuple[LedgerFlow, ClosingFlow, KeyValueStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        store: Key-value store to use. When None the configured backend
               is built; if Google Sheets cannot be set up the in-memory
               store is used instead.
        audit_storage: Where audit events are persisted
        clock: Clock source; defaults to the configured resilient clock

    Returns:
        (ledger_flow, closing_flow, store)
    """
    settings = get_settings()
    app_settings = settings.app

    if store is None:
        try:
            store, default_audit_storage = _create_storage(app_settings.storage_backend)
        except (StorageError, ValueError) as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend=app_settings.storage_backend, error=str(e))
            store, default_audit_storage = InMemoryKeyValueStore(), InMemoryAuditStorage()
        audit_storage = audit_storage or default_audit_storage

    audit_logger = AuditLogger(audit_storage)
    clock = clock or create_clock(settings, audit_logger)

    repository = LedgerRepository(store)
    reports = ReportGenerator(repository, currency_symbol=app_settings.currency_symbol)
    engine = ClosingEngine(
        repository,
        clock,
        reports,
        audit_logger=audit_logger,
        cleanup_daily_archives=app_settings.cleanup_daily_archives_on_month_close,
    )
    trigger = BoundaryTrigger(engine, repository, clock, audit_logger)
    limits = SpendingLimitTracker(
        repository,
        alert_threshold_percent=app_settings.spending_alert_threshold_percent,
    )

    ledger_flow = LedgerFlow(
        repository,
        clock,
        validator=TransactionValidator(
            max_amount=Decimal(str(app_settings.max_transaction_amount)),
            future_date_tolerance_days=app_settings.future_date_tolerance_days,
        ),
        limits=limits,
        audit_logger=audit_logger,
    )
    closing_flow = ClosingFlow(engine, trigger, reports, repository, audit_logger)

    return ledger_flow, closing_flow, store
