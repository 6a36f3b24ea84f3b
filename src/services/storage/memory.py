"""
In-Memory Storage Implementation

Used by tests and as the default backend for local runs.

Values are deep-copied on the way in and out so callers can never
mutate stored state through a reference they still hold.
"""

import copy
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStoreInterface,
    StoredValue,
    StoreReadError,
    StoreWriteError,
)


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Dictionary-backed key-value store."""

    def __init__(self, initial: Optional[dict[str, StoredValue]] = None):
        self._data: dict[str, StoredValue] = copy.deepcopy(initial) if initial else {}
        self._fail_reads = False
        self._failing_write_prefixes: set[str] = set()

    # Failure injection, so callers can exercise their error paths
    def fail_reads(self, enabled: bool = True) -> None:
        self._fail_reads = enabled

    def fail_writes_for(self, prefix: str) -> None:
        self._failing_write_prefixes.add(prefix)

    def clear_failures(self) -> None:
        self._fail_reads = False
        self._failing_write_prefixes.clear()

    def _check_read(self, key: str) -> None:
        if self._fail_reads:
            raise StoreReadError(f"Store unavailable reading {key}")

    def _check_write(self, key: str) -> None:
        if any(key.startswith(prefix) for prefix in self._failing_write_prefixes):
            raise StoreWriteError(f"Store rejected write to {key}")

    async def get(self, key: str) -> Optional[StoredValue]:
        self._check_read(key)
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: StoredValue) -> None:
        self._check_write(key)
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> bool:
        self._check_write(key)
        return self._data.pop(key, None) is not None

    async def list_keys_with_prefix(self, prefix: str) -> list[str]:
        self._check_read(prefix)
        return sorted(key for key in self._data if key.startswith(prefix))

    def keys(self) -> list[str]:
        """Every stored key (for inspection in tests and the UI)."""
        return sorted(self._data)


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
