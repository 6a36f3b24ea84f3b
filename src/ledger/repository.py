"""
Ledger Repository

Typed access to everything the ledger keeps in the key-value store.

DESIGN DECISION: Only this module knows how records are encoded.
Models are stored as JSON-compatible dicts (model_dump(mode="json"))
and read back with model_validate, so a record written by one backend
can be read by any other. A value that no longer validates is reported
as a StoreReadError rather than leaking a pydantic error to callers.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from src.models.ledger import (
    CloseMarkers,
    DailyArchive,
    DeletionRecord,
    MonthlyArchive,
    MonthlyReport,
    Transaction,
)
from src.periods.keys import StoreKeys, period_from_key
from src.services.storage.interface import KeyValueStoreInterface, StoreReadError


M = TypeVar("M", bound=BaseModel)


class LedgerRepository:
    """
    Reads and writes ledgers, archives, reports and markers for one store.

    All methods may raise StoreReadError / StoreWriteError from the
    underlying store.
    """

    def __init__(self, store: KeyValueStoreInterface):
        self._store = store

    @property
    def store(self) -> KeyValueStoreInterface:
        return self._store

    # -------------------------------------------------------------------------
    # Encoding helpers
    # -------------------------------------------------------------------------

    def _decode(self, key: str, model: Type[M], raw) -> M:
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise StoreReadError(f"Stored value under {key} is not a valid {model.__name__}: {e}")

    async def _get_model(self, key: str, model: Type[M]) -> Optional[M]:
        raw = await self._store.get(key)
        if raw is None:
            return None
        return self._decode(key, model, raw)

    async def _set_model(self, key: str, value: BaseModel) -> str:
        await self._store.set(key, value.model_dump(mode="json"))
        return key

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    async def load_ledger(self, username: str, month: str) -> list[Transaction]:
        """Open transactions for a month, in insertion order."""
        key = StoreKeys.ledger(username, month)
        raw = await self._store.get(key)
        if not raw:
            return []
        if not isinstance(raw, list):
            raise StoreReadError(f"Ledger under {key} is not a list")
        return [self._decode(key, Transaction, item) for item in raw]

    async def save_ledger(
        self,
        username: str,
        month: str,
        transactions: list[Transaction],
    ) -> str:
        key = StoreKeys.ledger(username, month)
        await self._store.set(key, [t.model_dump(mode="json") for t in transactions])
        return key

    async def clear_ledger(self, username: str, month: str) -> bool:
        return await self._store.delete(StoreKeys.ledger(username, month))

    async def list_ledger_months(self, username: str) -> list[str]:
        """Month-keys that have a ledger, oldest first."""
        keys = await self._store.list_keys_with_prefix(StoreKeys.ledger_prefix(username))
        return [period_from_key(key) for key in keys]

    # -------------------------------------------------------------------------
    # Daily archives
    # -------------------------------------------------------------------------

    async def get_daily_archive(self, username: str, day: date) -> Optional[DailyArchive]:
        return await self._get_model(StoreKeys.daily_archive(username, day), DailyArchive)

    async def save_daily_archive(self, username: str, archive: DailyArchive) -> str:
        return await self._set_model(StoreKeys.daily_archive(username, archive.date), archive)

    async def list_daily_archive_keys(self, username: str, month: str) -> list[str]:
        return await self._store.list_keys_with_prefix(
            StoreKeys.daily_archive_prefix(username, month)
        )

    async def load_all_daily_archives(self, username: str) -> list[DailyArchive]:
        """Every daily archive the user has, across all months."""
        archives = []
        for key in await self._store.list_keys_with_prefix(
            StoreKeys.daily_archive_user_prefix(username)
        ):
            archive = await self._get_model(key, DailyArchive)
            if archive is not None:
                archives.append(archive)
        return archives

    async def load_daily_archives(self, username: str, month: str) -> list[DailyArchive]:
        """Every daily archive of a month, ordered by date."""
        archives = []
        for key in await self.list_daily_archive_keys(username, month):
            archive = await self._get_model(key, DailyArchive)
            if archive is not None:
                archives.append(archive)
        archives.sort(key=lambda a: a.date)
        return archives

    # -------------------------------------------------------------------------
    # Monthly archives and reports
    # -------------------------------------------------------------------------

    async def get_monthly_archive(self, username: str, month: str) -> Optional[MonthlyArchive]:
        return await self._get_model(StoreKeys.monthly_archive(username, month), MonthlyArchive)

    async def save_monthly_archive(self, username: str, archive: MonthlyArchive) -> str:
        return await self._set_model(StoreKeys.monthly_archive(username, archive.month), archive)

    async def list_monthly_archive_months(self, username: str) -> list[str]:
        keys = await self._store.list_keys_with_prefix(StoreKeys.monthly_archive_prefix(username))
        return [period_from_key(key) for key in keys]

    async def monthly_archive_exists(self, username: str, month: str) -> bool:
        return await self._store.get(StoreKeys.monthly_archive(username, month)) is not None

    async def save_report(self, report: MonthlyReport) -> str:
        return await self._set_model(report.key, report)

    async def get_report(self, key: str) -> Optional[MonthlyReport]:
        return await self._get_model(key, MonthlyReport)

    async def list_report_keys(self, username: str) -> list[str]:
        return await self._store.list_keys_with_prefix(StoreKeys.monthly_report_prefix(username))

    # -------------------------------------------------------------------------
    # Deletion log
    # -------------------------------------------------------------------------

    async def append_deletion_record(self, username: str, record: DeletionRecord) -> str:
        """Append to the (user, date) deletion log; earlier records are kept."""
        key = StoreKeys.deletion_log(username, record.date)
        existing = await self._store.get(key) or []
        existing.append(record.model_dump(mode="json"))
        await self._store.set(key, existing)
        return key

    async def get_deletion_log(self, username: str, day: date) -> list[DeletionRecord]:
        key = StoreKeys.deletion_log(username, day)
        raw = await self._store.get(key) or []
        return [self._decode(key, DeletionRecord, item) for item in raw]

    # -------------------------------------------------------------------------
    # Markers and limits
    # -------------------------------------------------------------------------

    async def get_markers(self, username: str) -> CloseMarkers:
        markers = await self._get_model(StoreKeys.close_markers(username), CloseMarkers)
        return markers or CloseMarkers()

    async def save_markers(self, username: str, markers: CloseMarkers) -> str:
        return await self._set_model(StoreKeys.close_markers(username), markers)

    async def get_spending_limit(self, username: str) -> Optional[Decimal]:
        key = StoreKeys.spending_limit(username)
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return Decimal(str(raw))
        except ArithmeticError:
            raise StoreReadError(f"Spending limit under {key} is not a number: {raw!r}")

    async def set_spending_limit(self, username: str, limit: Decimal) -> None:
        await self._store.set(StoreKeys.spending_limit(username), str(limit))

    async def clear_spending_limit(self, username: str) -> bool:
        return await self._store.delete(StoreKeys.spending_limit(username))

    async def delete(self, key: str) -> bool:
        return await self._store.delete(key)
