"""
Core Data Models for the Personal Ledger

These models define the schemas for everything the ledger stores:
1. Transactions living in the open, per-month ledger
2. Immutable daily and monthly archives produced by closing
3. Aggregated statistics and the human-readable monthly report
4. Persisted closing markers and user-facing operation results

DESIGN DECISION: Archived records are frozen pydantic models.
Once a transaction has been written into an archive nothing in the
system can mutate it; a re-close overwrites the whole record instead.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

ZERO = Decimal("0")

# Largest amount an entry or limit may hold; keeps cent arithmetic inside
# the default decimal context precision.
AMOUNT_CEILING = Decimal("999999999999.99")


def utc_now() -> dt.datetime:
    """Timezone-aware current UTC instant."""
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    The three kinds of ledger entry.

    Aggregation and pruning switch on this enum only; nothing compares
    raw type strings.
    """
    INCOME = "income"
    FIXED_EXPENSE = "fixed_expense"
    EXPENSE = "expense"

    @property
    def label(self) -> str:
        return TRANSACTION_TYPE_LABELS[self]

    @property
    def category_presets(self) -> tuple[str, ...]:
        return CATEGORY_PRESETS[self]


TRANSACTION_TYPE_LABELS = {
    TransactionType.INCOME: "Income",
    TransactionType.FIXED_EXPENSE: "Fixed expense",
    TransactionType.EXPENSE: "Expense",
}

# Suggested categories offered by the entry form; any other text is allowed.
CATEGORY_PRESETS = {
    TransactionType.INCOME: (
        "Salary",
        "Bonus",
        "Investment",
        "Part-time",
        "Gift",
        "Rent received",
        "Refund",
        "Other income",
    ),
    TransactionType.FIXED_EXPENSE: (
        "Rent",
        "Utilities",
        "Phone & internet",
        "Insurance",
        "Car loan",
        "Mortgage",
        "Subscriptions",
        "Tuition",
        "Credit card",
        "Other fixed expense",
    ),
    TransactionType.EXPENSE: (
        "Food",
        "Transport",
        "Shopping",
        "Entertainment",
        "Medical",
        "Education",
        "Travel",
        "Gifts",
        "Beauty",
        "Home",
        "Electronics",
        "Clothing",
        "Other expense",
    ),
}

# Fixed-expense presets whose category doubles as the description.
FIXED_EXPENSE_AUTOFILL = frozenset(CATEGORY_PRESETS[TransactionType.FIXED_EXPENSE][:-1])


def autofill_description(entry_type: "TransactionType | str", category: str) -> Optional[str]:
    """
    Description implied by a fixed-expense preset.

    Returns:
        The category itself for a fixed expense such as "Rent", else None
        (the user types a description).
    """
    try:
        entry_type = TransactionType(entry_type)
    except ValueError:
        return None
    if entry_type == TransactionType.FIXED_EXPENSE and category in FIXED_EXPENSE_AUTOFILL:
        return category
    return None


# Entry types a daily close archives but leaves in the live ledger, so the
# running monthly balance keeps showing all income after its day rolls off.
RETAINED_ON_DAILY_CLOSE = frozenset({TransactionType.INCOME})


class CloseOutcome(str, Enum):
    """Result kind of a close operation."""
    CLOSED = "closed"
    NOTHING_TO_CLOSE = "nothing_to_close"


class BoundaryState(str, Enum):
    """States of the automatic period-boundary trigger."""
    NORMAL = "normal"
    DAY_BOUNDARY_CROSSED = "day_boundary_crossed"
    MONTH_BOUNDARY_CROSSED = "month_boundary_crossed"


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    One ledger entry.

    Transactions are only ever created through the validator and are
    immutable from then on: the ledger adds and removes whole entries.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    date: dt.date = Field(
        ...,
        description="Calendar day the entry belongs to"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Non-negative amount")
    ]
    type: TransactionType
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Free-form category tag"
    )
    created_at: dt.datetime = Field(
        default_factory=utc_now,
        description="When the entry was created"
    )

    @property
    def month_key(self) -> str:
        return self.date.strftime("%Y-%m")


# =============================================================================
# AGGREGATES
# =============================================================================

class CategoryStat(BaseModel):
    """Per-category totals."""

    amount: Decimal = ZERO
    count: int = Field(default=0, ge=0)
    type: TransactionType


class DailyAverage(BaseModel):
    """Income and spending averaged over the active days of a period."""

    income: Decimal = ZERO
    spending: Decimal = ZERO


class PeriodSummary(BaseModel):
    """
    Aggregator output for any batch of transactions.

    Used as the summary of a DailyArchive and as the base of MonthlyStats.
    """

    total_income: Decimal = ZERO
    total_fixed_expense: Decimal = ZERO
    total_expense: Decimal = ZERO
    total_spending: Decimal = ZERO
    balance: Decimal = ZERO
    transaction_count: int = Field(default=0, ge=0)
    days_count: int = Field(default=0, ge=0)
    category_stats: dict[str, CategoryStat] = Field(default_factory=dict)
    daily_average: DailyAverage = Field(default_factory=DailyAverage)


class DailySummaryEntry(BaseModel):
    """Summary of one closed day, as listed inside a month's stats."""

    date: dt.date
    summary: PeriodSummary


class MonthlyStats(PeriodSummary):
    """Month-wide aggregate plus the per-day breakdown."""

    daily_summaries: list[DailySummaryEntry] = Field(default_factory=list)
    daily_archive_count: int = Field(default=0, ge=0)


# =============================================================================
# ARCHIVES
# =============================================================================

class DailyArchive(BaseModel):
    """Immutable snapshot of one calendar day's closed activity."""
    model_config = ConfigDict(frozen=True)

    date: dt.date
    transactions: list[Transaction] = Field(default_factory=list)
    summary: PeriodSummary
    archived_at: dt.datetime = Field(default_factory=utc_now)


class MonthlyArchive(BaseModel):
    """Immutable snapshot of one calendar month's closed activity."""
    model_config = ConfigDict(frozen=True)

    month: str = Field(..., pattern=MONTH_KEY_PATTERN)
    month_name: str
    transactions: list[Transaction] = Field(default_factory=list)
    stats: MonthlyStats
    archived_at: dt.datetime = Field(default_factory=utc_now)


class DeletionRecord(BaseModel):
    """Audit entry for entries pruned from the ledger by a daily close."""

    date: dt.date
    deleted_at: dt.datetime = Field(default_factory=utc_now)
    removed_count: int = Field(..., ge=0)
    transactions: list[Transaction] = Field(default_factory=list)


# =============================================================================
# REPORTS
# =============================================================================

class ReportLine(BaseModel):
    """One labelled, already formatted summary value."""

    label: str
    value: str


class CategoryBreakdownRow(BaseModel):
    category: str
    amount: str
    count: str
    type: str


class DailyBreakdownRow(BaseModel):
    date: dt.date
    income: str
    fixed_expense: str
    expense: str
    balance: str


class MonthlyReport(BaseModel):
    """
    Human-readable view of a month's stats.

    Stored separately from the MonthlyArchive so reports can be listed
    and opened without loading every archived transaction.
    """

    key: str
    month: str = Field(..., pattern=MONTH_KEY_PATTERN)
    title: str
    username: str
    generated_at: dt.datetime = Field(default_factory=utc_now)
    summary: list[ReportLine] = Field(default_factory=list)
    category_breakdown: list[CategoryBreakdownRow] = Field(default_factory=list)
    daily_breakdown: Optional[list[DailyBreakdownRow]] = None

    def summary_value(self, label: str) -> Optional[str]:
        """Look up a formatted summary value by its label."""
        for line in self.summary:
            if line.label == label:
                return line.value
        return None


class ReportListing(BaseModel):
    """Entry in the list of a user's monthly reports."""

    key: str
    month: str
    title: str
    generated_at: dt.datetime
    balance: Optional[str] = None


# =============================================================================
# STATE, LIMITS AND RESULTS
# =============================================================================

class CloseMarkers(BaseModel):
    """
    Persisted closing state for one user.

    Replaces ambient "last closed" flags: the boundary trigger is a pure
    function of the current date and these markers.
    """

    last_daily_close_date: Optional[dt.date] = None
    closed_months: set[str] = Field(default_factory=set)

    @field_validator("closed_months")
    @classmethod
    def validate_month_keys(cls, v: set[str]) -> set[str]:
        for key in v:
            if len(key) != 7 or key[4] != "-":
                raise ValueError(f"Invalid month key in markers: {key}")
        return v


class ClockReading(BaseModel):
    """Current date as reported by a clock source."""

    date: dt.date
    month_key: str = Field(..., pattern=MONTH_KEY_PATTERN)
    is_fallback: bool = Field(
        default=False,
        description="True when the local device date was substituted"
    )


class CloseResult(BaseModel):
    """Outcome of closeDay or closeMonth."""

    outcome: CloseOutcome
    period: str = Field(..., description="Closed day (YYYY-MM-DD) or month (YYYY-MM)")
    message: str
    archive_key: Optional[str] = None
    transaction_count: int = 0
    removed_count: int = 0
    retained_count: int = 0
    summary: Optional[PeriodSummary] = None
    report_key: Optional[str] = None
    cleaned_up_count: int = 0

    @property
    def closed(self) -> bool:
        return self.outcome == CloseOutcome.CLOSED


class DailyStatus(BaseModel):
    """Whether a given day has been archived."""

    date: dt.date
    is_archived: bool
    archive_key: str
    transaction_count: int = 0
    archived_at: Optional[dt.datetime] = None


class BoundaryCheckResult(BaseModel):
    """What one session-start boundary check did."""

    today: dt.date
    states: list[BoundaryState] = Field(default_factory=list)
    used_fallback_clock: bool = False
    day_close: Optional[CloseResult] = None
    month_close_due: Optional[str] = None
    month_close: Optional[CloseResult] = None
    month_close_declined: bool = False
    correlation_id: Optional[UUID] = None


class SpendingLimitStatus(BaseModel):
    """Current month's expense spend compared against the user's limit."""

    month: str
    limit: Decimal = ZERO
    total_expense: Decimal = ZERO
    current_expense: Decimal = ZERO
    archived_expense: Decimal = ZERO
    remaining: Decimal = ZERO
    over_by: Decimal = ZERO
    usage_percent: Decimal = ZERO
    has_limit: bool = False
    is_over_limit: bool = False
    is_near_limit: bool = False


class OperationResult(BaseModel):
    """
    Envelope returned by every user-facing operation.

    Maps one-to-one onto a JSON response: a success flag plus either a
    payload or a short error message.
    """

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "OperationResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)

    def to_json_dict(self) -> dict:
        payload = self.data
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")
        elif isinstance(payload, list):
            payload = [
                item.model_dump(mode="json") if isinstance(item, BaseModel) else item
                for item in payload
            ]
        result = {"success": self.success}
        if self.success:
            result["data"] = payload
            if self.message:
                result["message"] = self.message
        else:
            result["error"] = self.error
        return result


# =============================================================================
# VALIDATION
# =============================================================================

class TransactionDraft(BaseModel):
    """
    Raw entry as submitted by the form.

    Deliberately loose: every field may be missing or malformed. The
    validator turns a draft into a Transaction or a list of issues.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Any = None
    description: Optional[str] = None
    amount: Any = None
    type: Optional[str] = None
    category: Optional[str] = None


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (plausibility checks, warnings only)
    """

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    transaction: Optional[Transaction] = Field(
        default=None,
        description="The validated entry, present only when is_valid"
    )

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)


# =============================================================================
# QUERIES
# =============================================================================

class TransactionSource(str, Enum):
    """Where a search hit was found."""
    LEDGER = "ledger"
    DAILY_ARCHIVE = "daily_archive"
    MONTHLY_ARCHIVE = "monthly_archive"


class TransactionQuery(BaseModel):
    """
    Structured search over a user's transactions in every month.

    All filters are optional and combine with AND.
    """

    query_id: UUID = Field(default_factory=uuid4)
    year: Optional[int] = Field(default=None, ge=1900, le=9999)
    month: Optional[int] = Field(default=None, ge=1, le=12)
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(
        default=None,
        description="Exact category, case-insensitive"
    )
    text: Optional[str] = Field(
        default=None,
        description="Substring of the description, case-insensitive"
    )
    include_archived: bool = Field(
        default=False,
        description="Also search daily and monthly archives"
    )
    limit: int = Field(default=100, ge=1, le=1000)

    def matches_month(self, month_key: str) -> bool:
        year, month = (int(part) for part in month_key.split("-"))
        if self.year is not None and year != self.year:
            return False
        if self.month is not None and month != self.month:
            return False
        return True


class SearchHit(BaseModel):
    transaction: Transaction
    source: TransactionSource


class QueryResult(BaseModel):
    """
    Result of executing a TransactionQuery.

    Totals cover every match, not just the returned page.
    """

    query_id: UUID
    success: bool
    data_found: bool = False
    result_count: int = 0
    total_matches: int = 0
    hits: list[SearchHit] = Field(default_factory=list)
    total_income: Decimal = ZERO
    total_spending: Decimal = ZERO
    query_description: str = ""
    error_message: Optional[str] = None
