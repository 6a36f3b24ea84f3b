"""
Closing Engine

Moves a closed period's transactions out of the live ledger into
immutable archives, and rolls daily archives up into a monthly archive
plus report.

DESIGN DECISION: Every close is a short, retriable unit.
1. Writes are idempotent overwrites keyed by period, so re-running a
   close with unchanged inputs reproduces the same records.
2. The archive is written BEFORE the ledger is pruned. If the archive
   write fails the ledger is untouched; if pruning fails the next run
   finds the entries already archived and simply finishes the prune.
3. "Nothing to close" is a normal outcome, never an exception.

There is no locking: each ledger has a single writer (its owner's
session), and safe retry comes from the overwrite semantics above.
"""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

import structlog

from src.closing.aggregator import build_monthly_stats, summarize
from src.ledger.repository import LedgerRepository
from src.models.ledger import (
    RETAINED_ON_DAILY_CLOSE,
    CloseOutcome,
    CloseResult,
    DailyArchive,
    DailyStatus,
    DailySummaryEntry,
    DeletionRecord,
    MonthlyArchive,
    Transaction,
)
from src.periods.keys import (
    StoreKeys,
    day_key,
    month_key,
    month_name,
    previous_day,
    previous_month_key,
    validate_month_key,
)
from src.reports.generator import ReportGenerator
from src.services.clock import ClockSourceInterface
from src.services.storage.interface import StorageError


logger = structlog.get_logger("ledger.closing")


def merge_by_id(*batches: Iterable[Transaction]) -> list[Transaction]:
    """
    Union of transaction batches, de-duplicated by id.

    The first occurrence of an id wins and keeps its position.
    """
    merged: dict[UUID, Transaction] = {}
    for batch in batches:
        for txn in batch:
            merged.setdefault(txn.id, txn)
    return list(merged.values())


class ClosingEngine:
    """
    Performs daily and monthly closes for any user of one store.

    Usage:
        engine = ClosingEngine(repository, clock, reports, audit_logger)
        result = await engine.close_day("alice", date(2025, 1, 5))
        result = await engine.close_month("alice", "2025-01")
    """

    def __init__(
        self,
        repository: LedgerRepository,
        clock: ClockSourceInterface,
        reports: ReportGenerator,
        audit_logger=None,
        cleanup_daily_archives: bool = True,
    ):
        self._repo = repository
        self._clock = clock
        self._reports = reports
        self._audit = audit_logger
        self._cleanup_daily_archives = cleanup_daily_archives

    async def _yesterday(self) -> date:
        reading = await self._clock.read()
        return previous_day(reading.date)

    async def _nothing_to_close(
        self,
        username: str,
        period: str,
        message: str,
        correlation_id: Optional[UUID],
    ) -> CloseResult:
        logger.info("nothing_to_close", username=username, period=period)
        if self._audit:
            await self._audit.log_nothing_to_close(username, period, correlation_id)
        return CloseResult(
            outcome=CloseOutcome.NOTHING_TO_CLOSE,
            period=period,
            message=message,
        )

    # -------------------------------------------------------------------------
    # Daily close
    # -------------------------------------------------------------------------

    async def close_day(
        self,
        username: str,
        target_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CloseResult:
        """
        Archive one calendar day and prune its spending from the ledger.

        Args:
            username: Ledger owner
            target_date: Day to close; defaults to yesterday per the clock
            correlation_id: Ties the audit events of one session together

        Returns:
            CloseResult; NOTHING_TO_CLOSE when the day has no entries or
            every entry is already archived and nothing is left to prune

        Raises:
            StorageError: If the store fails; the ledger is left intact
                when the failure happens before the archive is written
        """
        if target_date is None:
            target_date = await self._yesterday()

        period = day_key(target_date)
        month = month_key(target_date)

        ledger = await self._repo.load_ledger(username, month)
        selected = [t for t in ledger if t.date == target_date]

        existing = await self._repo.get_daily_archive(username, target_date)
        archived_ids = {t.id for t in existing.transactions} if existing else set()

        to_prune = [t for t in selected if t.type not in RETAINED_ON_DAILY_CLOSE]
        unarchived = [t for t in selected if t.id not in archived_ids]

        if not unarchived and not to_prune:
            return await self._nothing_to_close(
                username, period, f"No transactions to close for {period}", correlation_id
            )

        # 1. Archive (merged with whatever an earlier close of this day kept)
        transactions = merge_by_id(existing.transactions if existing else [], selected)
        summary = summarize(transactions)
        archive = DailyArchive(date=target_date, transactions=transactions, summary=summary)
        archive_key = await self._repo.save_daily_archive(username, archive)

        # 2. Prune, only after the archive is safely stored
        if to_prune:
            pruned_ids = {t.id for t in to_prune}
            remaining = [t for t in ledger if t.id not in pruned_ids]
            await self._repo.save_ledger(username, month, remaining)

            # 3. Deletion record
            await self._repo.append_deletion_record(
                username,
                DeletionRecord(
                    date=target_date,
                    removed_count=len(to_prune),
                    transactions=to_prune,
                ),
            )

        retained_count = len(selected) - len(to_prune)

        logger.info(
            "day_closed",
            username=username,
            date=period,
            archived=len(transactions),
            removed=len(to_prune),
            retained=retained_count,
        )
        if self._audit:
            await self._audit.log_day_closed(
                username=username,
                day=target_date,
                archive_key=archive_key,
                archived_count=len(transactions),
                removed_count=len(to_prune),
                retained_count=retained_count,
                correlation_id=correlation_id,
            )

        return CloseResult(
            outcome=CloseOutcome.CLOSED,
            period=period,
            message=(
                f"Closed {period}: {len(transactions)} archived, "
                f"{len(to_prune)} removed from the ledger"
            ),
            archive_key=archive_key,
            transaction_count=len(transactions),
            removed_count=len(to_prune),
            retained_count=retained_count,
            summary=summary,
        )

    async def get_daily_status(
        self,
        username: str,
        target_date: Optional[date] = None,
    ) -> DailyStatus:
        """Whether a day (default: yesterday) has been archived."""
        if target_date is None:
            target_date = await self._yesterday()

        archive = await self._repo.get_daily_archive(username, target_date)
        return DailyStatus(
            date=target_date,
            is_archived=archive is not None,
            archive_key=StoreKeys.daily_archive(username, target_date),
            transaction_count=len(archive.transactions) if archive else 0,
            archived_at=archive.archived_at if archive else None,
        )

    # -------------------------------------------------------------------------
    # Monthly close
    # -------------------------------------------------------------------------

    async def close_month(
        self,
        username: str,
        target_month: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CloseResult:
        """
        Roll a month's daily archives and remaining ledger into one archive.

        Args:
            username: Ledger owner
            target_month: Month-key to close; defaults to the month before
                the clock's current month
            correlation_id: Ties the audit events of one session together

        Returns:
            CloseResult; NOTHING_TO_CLOSE when the month has neither
            daily archives nor ledger entries

        Raises:
            StorageError: If reading the sources or writing the archive,
                report or markers fails. A failed cleanup is not an error.
        """
        if target_month is None:
            reading = await self._clock.read()
            target_month = previous_month_key(reading.month_key)
        validate_month_key(target_month)

        daily_archives = await self._repo.load_daily_archives(username, target_month)
        ledger = [
            t for t in await self._repo.load_ledger(username, target_month)
            if t.month_key == target_month
        ]

        if not daily_archives and not ledger:
            return await self._nothing_to_close(
                username,
                target_month,
                f"No daily archives or transactions to close for {month_name(target_month)}",
                correlation_id,
            )

        existing = await self._repo.get_monthly_archive(username, target_month)

        transactions = merge_by_id(
            existing.transactions if existing else [],
            *(archive.transactions for archive in daily_archives),
            ledger,
        )

        summaries: dict[date, DailySummaryEntry] = {}
        if existing:
            summaries.update((entry.date, entry) for entry in existing.stats.daily_summaries)
        for archive in daily_archives:
            summaries[archive.date] = DailySummaryEntry(date=archive.date, summary=archive.summary)

        stats = build_monthly_stats(transactions, summaries.values())
        archive = MonthlyArchive(
            month=target_month,
            month_name=month_name(target_month),
            transactions=transactions,
            stats=stats,
        )
        archive_key = await self._repo.save_monthly_archive(username, archive)

        report = await self._reports.generate(username, target_month, stats)
        if self._audit:
            await self._audit.log_report_generated(username, report.key, correlation_id)

        markers = await self._repo.get_markers(username)
        markers.closed_months.add(target_month)
        await self._repo.save_markers(username, markers)

        logger.info(
            "month_closed",
            username=username,
            month=target_month,
            transactions=len(transactions),
            daily_archives=len(daily_archives),
        )
        if self._audit:
            await self._audit.log_month_closed(
                username=username,
                month=target_month,
                archive_key=archive_key,
                transaction_count=len(transactions),
                daily_archive_count=stats.daily_archive_count,
                correlation_id=correlation_id,
            )

        cleaned = 0
        if self._cleanup_daily_archives and daily_archives:
            cleaned = await self._cleanup(username, target_month, correlation_id)

        return CloseResult(
            outcome=CloseOutcome.CLOSED,
            period=target_month,
            message=(
                f"Closed {month_name(target_month)}: {len(transactions)} transactions "
                f"from {len(daily_archives)} daily archives"
            ),
            archive_key=archive_key,
            transaction_count=len(transactions),
            summary=stats,
            report_key=report.key,
            cleaned_up_count=cleaned,
        )

    async def _cleanup(
        self,
        username: str,
        month: str,
        correlation_id: Optional[UUID],
    ) -> int:
        """
        Delete a closed month's daily archives.

        The monthly archive already holds their union, so a failure here
        is logged and the close still counts as successful.
        """
        deleted = 0
        try:
            for key in await self._repo.list_daily_archive_keys(username, month):
                if await self._repo.delete(key):
                    deleted += 1
        except StorageError as e:
            logger.warning(
                "daily_archive_cleanup_failed",
                username=username,
                month=month,
                deleted=deleted,
                error=str(e),
            )
            if self._audit:
                await self._audit.log_store_failure(
                    "daily archive cleanup", str(e), username, correlation_id
                )
            return deleted

        if self._audit:
            await self._audit.log_daily_archives_cleaned(username, month, deleted, correlation_id)
        return deleted
