"""
Query Execution Engine

DESIGN DECISION: Search is DETERMINISTIC and reads only stored data.
Months are discovered by a prefix scan of the user's ledger keys (and,
when archives are included, archive keys), never by guessing a range.

An entry can appear in several places at once (income stays in the
ledger after its day is archived; a monthly archive repeats its daily
archives). Hits are de-duplicated by transaction id, preferring the
live ledger, then daily archives, then monthly archives.
"""

from decimal import Decimal
from typing import Iterable

from src.ledger.repository import LedgerRepository
from src.models.ledger import (
    ZERO,
    QueryResult,
    SearchHit,
    Transaction,
    TransactionQuery,
    TransactionSource,
    TransactionType,
)
from src.services.storage.interface import StorageError


class TransactionQueryExecutor:
    """
    Executes transaction searches against the ledger store.

    GUARANTEES:
    - Only returns real data from storage
    - Each transaction appears at most once
    - Newest first (by date, then creation time)
    """

    def __init__(self, repository: LedgerRepository):
        self._repo = repository

    def _matches(self, query: TransactionQuery, txn: Transaction) -> bool:
        if not query.matches_month(txn.month_key):
            return False
        if query.type is not None and txn.type != query.type:
            return False
        if query.category and txn.category.lower() != query.category.strip().lower():
            return False
        if query.text and query.text.strip().lower() not in txn.description.lower():
            return False
        return True

    async def _collect(self, username: str, query: TransactionQuery) -> dict:
        found: dict = {}

        def add(transactions: Iterable[Transaction], source: TransactionSource) -> None:
            for txn in transactions:
                if txn.id not in found and self._matches(query, txn):
                    found[txn.id] = SearchHit(transaction=txn, source=source)

        for month in await self._repo.list_ledger_months(username):
            if query.matches_month(month):
                add(await self._repo.load_ledger(username, month), TransactionSource.LEDGER)

        if query.include_archived:
            for archive in await self._repo.load_all_daily_archives(username):
                add(archive.transactions, TransactionSource.DAILY_ARCHIVE)
            for month in await self._repo.list_monthly_archive_months(username):
                if not query.matches_month(month):
                    continue
                archive = await self._repo.get_monthly_archive(username, month)
                if archive is not None:
                    add(archive.transactions, TransactionSource.MONTHLY_ARCHIVE)

        return found

    def _describe(self, query: TransactionQuery) -> str:
        desc_parts = ["Searching transactions"]
        if query.year is not None:
            desc_parts.append(f"year: {query.year}")
        if query.month is not None:
            desc_parts.append(f"month: {query.month:02d}")
        if query.type is not None:
            desc_parts.append(f"type: {query.type.value}")
        if query.category:
            desc_parts.append(f"category: {query.category}")
        if query.text:
            desc_parts.append(f"text: '{query.text}'")
        if query.include_archived:
            desc_parts.append("including archives")
        return " | ".join(desc_parts)

    async def execute(self, username: str, query: TransactionQuery) -> QueryResult:
        """
        Run a search for one user.

        Store failures are reported in the result rather than raised.
        """
        try:
            found = await self._collect(username, query)
        except StorageError as e:
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                query_description=f"Query failed: {e}",
            )

        hits = sorted(
            found.values(),
            key=lambda hit: (hit.transaction.date, hit.transaction.created_at),
            reverse=True,
        )

        total_income: Decimal = ZERO
        total_spending: Decimal = ZERO
        for hit in hits:
            if hit.transaction.type == TransactionType.INCOME:
                total_income += hit.transaction.amount
            else:
                total_spending += hit.transaction.amount

        page = hits[:query.limit]
        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(hits) > 0,
            result_count=len(page),
            total_matches=len(hits),
            hits=page,
            total_income=total_income,
            total_spending=total_spending,
            query_description=self._describe(query),
        )
