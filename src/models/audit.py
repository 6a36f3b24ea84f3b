"""
Audit Models for the Personal Ledger

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of closes and ledger edits
2. Debugging information when a close is aborted
3. A record of when the clock fell back to device time

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each step of entry creation and period closing has its own event type.
    """
    # Ledger edits
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_REJECTED = "transaction_rejected"
    TRANSACTION_DELETED = "transaction_deleted"
    LEDGER_MONTH_RESET = "ledger_month_reset"

    # Closing
    DAY_CLOSED = "day_closed"
    MONTH_CLOSED = "month_closed"
    NOTHING_TO_CLOSE = "nothing_to_close"
    DAILY_ARCHIVES_CLEANED = "daily_archives_cleaned"
    MONTHLY_REPORT_GENERATED = "monthly_report_generated"

    # Boundary trigger
    BOUNDARY_CHECKED = "boundary_checked"
    MONTH_CLOSE_DECLINED = "month_close_declined"

    # Spending limit
    SPENDING_LIMIT_SET = "spending_limit_set"
    SPENDING_LIMIT_CLEARED = "spending_limit_cleared"

    # Degraded mode and failures
    CLOCK_FALLBACK = "clock_fallback"
    STORE_FAILURE = "store_failure"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    username: Optional[str] = Field(
        default=None,
        description="Owner of the ledger the event concerns"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'daily_archive')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Transaction ID or store key the event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one session check)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "username": self.username,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, username, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.username or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.day_closed(username, day, archive_key, ...)
        event = AuditEventBuilder.clock_fallback(reason, fallback_date)
    """

    @staticmethod
    def transaction_added(
        username: str,
        transaction_id: UUID,
        transaction_type: str,
        amount: str,
        day: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            username=username,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Transaction added: {transaction_type} {amount} on {day}",
            details={
                "type": transaction_type,
                "amount": amount,
                "date": day,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        username: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            username=username,
            entity_type="transaction",
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        username: str,
        transaction_id: UUID,
        month: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            username=username,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Transaction deleted from {month} ledger",
            details={"month": month},
            is_user_action=True,
        )

    @staticmethod
    def ledger_month_reset(
        username: str,
        month: str,
        removed_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_MONTH_RESET,
            severity=AuditSeverity.WARNING,
            username=username,
            entity_type="ledger",
            entity_id=month,
            description=f"Ledger for {month} reset ({removed_count} entries removed)",
            details={"removed_count": removed_count},
            is_user_action=True,
        )

    @staticmethod
    def day_closed(
        username: str,
        day: str,
        archive_key: str,
        archived_count: int,
        removed_count: int,
        retained_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DAY_CLOSED,
            username=username,
            entity_type="daily_archive",
            entity_id=archive_key,
            correlation_id=correlation_id,
            description=(
                f"Day {day} closed: {archived_count} archived, "
                f"{removed_count} pruned, {retained_count} retained"
            ),
            details={
                "date": day,
                "archived_count": archived_count,
                "removed_count": removed_count,
                "retained_count": retained_count,
            },
        )

    @staticmethod
    def month_closed(
        username: str,
        month: str,
        archive_key: str,
        transaction_count: int,
        daily_archive_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_CLOSED,
            username=username,
            entity_type="monthly_archive",
            entity_id=archive_key,
            correlation_id=correlation_id,
            description=f"Month {month} closed with {transaction_count} transactions",
            details={
                "month": month,
                "transaction_count": transaction_count,
                "daily_archive_count": daily_archive_count,
            },
        )

    @staticmethod
    def nothing_to_close(
        username: str,
        period: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTHING_TO_CLOSE,
            severity=AuditSeverity.DEBUG,
            username=username,
            entity_type="period",
            entity_id=period,
            correlation_id=correlation_id,
            description=f"Nothing to close for {period}",
        )

    @staticmethod
    def daily_archives_cleaned(
        username: str,
        month: str,
        deleted_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DAILY_ARCHIVES_CLEANED,
            username=username,
            entity_type="daily_archive",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Removed {deleted_count} daily archives for {month}",
            details={"deleted_count": deleted_count},
        )

    @staticmethod
    def monthly_report_generated(
        username: str,
        report_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTHLY_REPORT_GENERATED,
            username=username,
            entity_type="monthly_report",
            entity_id=report_key,
            correlation_id=correlation_id,
            description=f"Monthly report stored at {report_key}",
        )

    @staticmethod
    def boundary_checked(
        username: str,
        today: str,
        states: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BOUNDARY_CHECKED,
            severity=AuditSeverity.DEBUG,
            username=username,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Boundary check on {today}: {', '.join(states)}",
            details={"today": today, "states": states},
        )

    @staticmethod
    def month_close_declined(
        username: str,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_CLOSE_DECLINED,
            username=username,
            entity_type="period",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"User declined closing {month}",
            is_user_action=True,
        )

    @staticmethod
    def spending_limit_set(
        username: str,
        limit: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_LIMIT_SET,
            username=username,
            entity_type="spending_limit",
            description=f"Spending limit set to {limit}",
            details={"limit": limit},
            is_user_action=True,
        )

    @staticmethod
    def spending_limit_cleared(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_LIMIT_CLEARED,
            username=username,
            entity_type="spending_limit",
            description="Spending limit cleared",
            is_user_action=True,
        )

    @staticmethod
    def clock_fallback(
        reason: str,
        fallback_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLOCK_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="clock",
            description=f"Clock source unavailable, using device date {fallback_date}",
            error_message=reason,
            details={"fallback_date": fallback_date},
        )

    @staticmethod
    def store_failure(
        operation: str,
        error_message: str,
        username: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_FAILURE,
            severity=AuditSeverity.ERROR,
            username=username,
            description=f"Store failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
