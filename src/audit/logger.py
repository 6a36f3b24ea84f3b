"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of every close and ledger edit
2. Debugging capability when a close is aborted
3. User can see history of their ledger

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from src.services.storage import AuditStorageInterface


# Events read from storage before filtering one user's activity
ACTIVITY_SCAN_LIMIT = 1000


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_added(
        self,
        username: str,
        transaction_id: UUID,
        transaction_type: str,
        amount: Decimal,
        day: date,
    ) -> None:
        """Log a new ledger entry."""
        event = AuditEventBuilder.transaction_added(
            username=username,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=str(amount),
            day=day.isoformat(),
        )
        await self.log(event)

    async def log_transaction_rejected(
        self,
        username: str,
        issues: list[dict],
    ) -> None:
        """Log an entry that failed validation."""
        await self.log(AuditEventBuilder.transaction_rejected(username, issues))

    async def log_transaction_deleted(
        self,
        username: str,
        transaction_id: UUID,
        month: str,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(username, transaction_id, month))

    async def log_month_reset(
        self,
        username: str,
        month: str,
        removed_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_month_reset(username, month, removed_count))

    async def log_day_closed(
        self,
        username: str,
        day: date,
        archive_key: str,
        archived_count: int,
        removed_count: int,
        retained_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed daily close."""
        event = AuditEventBuilder.day_closed(
            username=username,
            day=day.isoformat(),
            archive_key=archive_key,
            archived_count=archived_count,
            removed_count=removed_count,
            retained_count=retained_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_month_closed(
        self,
        username: str,
        month: str,
        archive_key: str,
        transaction_count: int,
        daily_archive_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed monthly close."""
        event = AuditEventBuilder.month_closed(
            username=username,
            month=month,
            archive_key=archive_key,
            transaction_count=transaction_count,
            daily_archive_count=daily_archive_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_nothing_to_close(
        self,
        username: str,
        period: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.nothing_to_close(username, period, correlation_id))

    async def log_daily_archives_cleaned(
        self,
        username: str,
        month: str,
        deleted_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.daily_archives_cleaned(
            username=username,
            month=month,
            deleted_count=deleted_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_report_generated(
        self,
        username: str,
        report_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.monthly_report_generated(username, report_key, correlation_id)
        )

    async def log_boundary_checked(
        self,
        username: str,
        today: date,
        states: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the outcome of a session-start boundary check."""
        event = AuditEventBuilder.boundary_checked(
            username=username,
            today=today.isoformat(),
            states=states,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_month_close_declined(
        self,
        username: str,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.month_close_declined(username, month, correlation_id))

    async def log_spending_limit_set(self, username: str, limit: Decimal) -> None:
        await self.log(AuditEventBuilder.spending_limit_set(username, str(limit)))

    async def log_spending_limit_cleared(self, username: str) -> None:
        await self.log(AuditEventBuilder.spending_limit_cleared(username))

    async def log_clock_fallback(self, reason: str, fallback_date: date) -> None:
        """Log that the device date replaced the authoritative clock."""
        await self.log(AuditEventBuilder.clock_fallback(reason, fallback_date.isoformat()))

    async def log_store_failure(
        self,
        operation: str,
        error_message: str,
        username: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed store read or write."""
        event = AuditEventBuilder.store_failure(
            operation=operation,
            error_message=error_message,
            username=username,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def get_session_trail(self, correlation_id: UUID) -> list[AuditEvent]:
        """Events recorded under one correlation ID, oldest first."""
        if not self._storage:
            return []
        return await self._storage.get_events_by_correlation_id(correlation_id)

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events about one archive, report or period, oldest first."""
        if not self._storage:
            return []
        return await self._storage.get_events_by_entity(entity_type, entity_id)

    async def get_recent_activity(
        self,
        username: str,
        limit: int = 50,
    ) -> list[AuditEvent]:
        """
        A user's most recent events, newest first.

        Events without a username (clock fallbacks) are included.
        """
        if not self._storage:
            return []
        events = await self._storage.get_recent_events(limit=ACTIVITY_SCAN_LIMIT)
        mine = [e for e in events if e.username in (username, None)]
        return mine[:limit]


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a session check).
    Pass it through all subsequent operations.
    """
    return uuid4()
