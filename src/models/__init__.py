"""
Data Models Package

This package contains all Pydantic models used by the personal ledger.
All data flowing through the closing engine must conform to these schemas.
"""

from src.models.ledger import (
    AMOUNT_CEILING,
    CATEGORY_PRESETS,
    RETAINED_ON_DAILY_CLOSE,
    BoundaryCheckResult,
    BoundaryState,
    CategoryBreakdownRow,
    CategoryStat,
    ClockReading,
    CloseMarkers,
    CloseOutcome,
    CloseResult,
    DailyArchive,
    DailyAverage,
    DailyBreakdownRow,
    DailyStatus,
    DailySummaryEntry,
    DeletionRecord,
    MonthlyArchive,
    MonthlyReport,
    MonthlyStats,
    OperationResult,
    PeriodSummary,
    QueryResult,
    ReportLine,
    ReportListing,
    SearchHit,
    SpendingLimitStatus,
    Transaction,
    TransactionDraft,
    TransactionQuery,
    TransactionSource,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AMOUNT_CEILING",
    "CATEGORY_PRESETS",
    "RETAINED_ON_DAILY_CLOSE",
    "BoundaryCheckResult",
    "BoundaryState",
    "CategoryBreakdownRow",
    "CategoryStat",
    "ClockReading",
    "CloseMarkers",
    "CloseOutcome",
    "CloseResult",
    "DailyArchive",
    "DailyAverage",
    "DailyBreakdownRow",
    "DailyStatus",
    "DailySummaryEntry",
    "DeletionRecord",
    "MonthlyArchive",
    "MonthlyReport",
    "MonthlyStats",
    "OperationResult",
    "PeriodSummary",
    "QueryResult",
    "ReportLine",
    "ReportListing",
    "SearchHit",
    "SpendingLimitStatus",
    "Transaction",
    "TransactionDraft",
    "TransactionQuery",
    "TransactionSource",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
