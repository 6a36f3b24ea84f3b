"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the closing engine decoupled from storage implementation

The ledger only needs a string-keyed store of JSON-compatible values with
a prefix scan. Every ledger, archive, report and marker is one key.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from src.models.audit import AuditEvent


# Values are plain JSON-compatible structures (dicts, lists, strings, numbers)
StoredValue = Any


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for the persistent key-value store.

    Any storage implementation (Google Sheets, Redis, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[StoredValue]:
        """
        Read the value stored under a key.

        Args:
            key: Exact store key

        Returns:
            The stored value, or None if the key is absent

        Raises:
            StoreReadError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: StoredValue) -> None:
        """
        Create or overwrite the value stored under a key.

        Args:
            key: Exact store key
            value: JSON-compatible value

        Raises:
            StoreWriteError: If the value could not be persisted
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Remove a key.

        Args:
            key: Exact store key

        Returns:
            True if the key existed

        Raises:
            StoreWriteError: If the deletion failed
        """
        pass

    @abstractmethod
    async def list_keys_with_prefix(self, prefix: str) -> list[str]:
        """
        Enumerate keys starting with a prefix.

        Args:
            prefix: Literal key prefix (no wildcards)

        Returns:
            Matching keys in ascending order

        Raises:
            StoreReadError: If the backend cannot be read
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one session check).

        Args:
            correlation_id: The correlation identifier

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'transaction', 'daily_archive')
            entity_id: The entity's ID or period key

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StoreReadError(StorageError):
    """The backend could not be read."""
    pass


class StoreWriteError(StorageError):
    """A value could not be persisted or removed."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
