"""Services package."""

from src.services.clock import (
    ClockSourceInterface,
    ClockUnavailableError,
    HttpClockSource,
    ResilientClock,
    TimezoneClock,
    create_clock,
)
from src.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    KeyValueStoreInterface,
    NotFoundError,
    StorageError,
    StoreReadError,
    StoreWriteError,
)

__all__ = [
    # Clock services
    "ClockSourceInterface",
    "ClockUnavailableError",
    "HttpClockSource",
    "ResilientClock",
    "TimezoneClock",
    "create_clock",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStore",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "KeyValueStoreInterface",
    "NotFoundError",
    "StorageError",
    "StoreReadError",
    "StoreWriteError",
]
