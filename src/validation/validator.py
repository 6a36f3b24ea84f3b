"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Amount is a finite, non-negative number below AMOUNT_CEILING
- Type is one of the known entry types
- Date parses as a calendar day
- This catches malformed form input

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- These only produce warnings; the entry is still accepted

Invalid entries are rejected here, at creation time, and never reach
the ledger or the closing engine.

IMPORTANT: Validation NEVER silently fixes issues beyond normalising
the amount to cents. It reports them.
"""

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from src.config import get_settings
from src.models.ledger import (
    AMOUNT_CEILING,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from src.periods.keys import parse_day


CENT = Decimal("0.01")

DESCRIPTION_MAX_LENGTH = 200
CATEGORY_MAX_LENGTH = 100


class InvalidTransactionError(Exception):
    """An entry failed schema validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        self.issues: list[ValidationIssue] = result.issues
        errors = [issue.message for issue in result.errors]
        super().__init__("; ".join(errors) or "Invalid transaction")


def parse_amount(value) -> Optional[Decimal]:
    """Decimal amount from user input, or None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


class TransactionValidator:
    """
    Validates ledger entries through a two-stage pipeline.

    Stage 1: Schema validation (errors block the entry)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(
        self,
        max_amount: Optional[Decimal] = None,
        future_date_tolerance_days: Optional[int] = None,
    ):
        """
        Initialize validator.

        Args:
            max_amount: Amount above which a warning is raised.
                        Defaults to AppSettings.max_transaction_amount.
            future_date_tolerance_days: Days ahead of today a date may be
                        without a warning. Defaults to settings.
        """
        if max_amount is None or future_date_tolerance_days is None:
            settings = get_settings().app
            if max_amount is None:
                max_amount = Decimal(str(settings.max_transaction_amount))
            if future_date_tolerance_days is None:
                future_date_tolerance_days = settings.future_date_tolerance_days
        self._max_amount = max_amount
        self._future_tolerance = future_date_tolerance_days

    def _validate_schema(
        self,
        draft: TransactionDraft,
    ) -> tuple[dict, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_fields, list_of_issues)
        """
        issues = []
        parsed = {}

        # Date
        if draft.date in (None, ""):
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Date is required",
                severity="error",
            ))
        else:
            try:
                parsed["date"] = parse_day(draft.date)
            except (AttributeError, TypeError, ValueError):
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="invalid_format",
                    message=f"Date '{draft.date}' is not a valid YYYY-MM-DD day",
                    severity="error",
                    suggested_fix="Use the format 2025-01-31",
                ))

        # Description
        if not draft.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
            ))
        elif len(draft.description) > DESCRIPTION_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
                severity="error",
            ))
        else:
            parsed["description"] = draft.description

        # Amount
        if draft.amount in (None, ""):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        else:
            amount = parse_amount(draft.amount)
            if amount is None:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_format",
                    message=f"Amount '{draft.amount}' is not a number",
                    severity="error",
                    suggested_fix="Enter digits only, e.g. 12.50",
                ))
            elif amount < 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must not be negative",
                    severity="error",
                    suggested_fix="Choose an expense type instead of a negative amount",
                ))
            elif amount > AMOUNT_CEILING:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message=f"Amount must not exceed {AMOUNT_CEILING:,}",
                    severity="error",
                ))
            else:
                parsed["amount"] = amount.quantize(CENT, rounding=ROUND_HALF_UP)

        # Type
        if not draft.type:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message="Type is required",
                severity="error",
            ))
        else:
            try:
                parsed["type"] = TransactionType(draft.type)
            except ValueError:
                allowed = ", ".join(t.value for t in TransactionType)
                issues.append(ValidationIssue(
                    field="type",
                    issue_type="invalid_value",
                    message=f"Type '{draft.type}' is not one of: {allowed}",
                    severity="error",
                ))

        # Category
        if not draft.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))
        elif len(draft.category) > CATEGORY_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="category",
                issue_type="too_long",
                message=f"Category must be at most {CATEGORY_MAX_LENGTH} characters",
                severity="error",
            ))
        else:
            parsed["category"] = draft.category

        return parsed, issues

    def _validate_semantic(
        self,
        parsed: dict,
        today: date,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Checks:
        - Future dates
        - Absurd amounts
        - Zero amounts

        Returns: list_of_issues (warnings)
        """
        issues = []

        max_future_date = today + timedelta(days=self._future_tolerance)
        if parsed["date"] > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({parsed['date']}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if parsed["amount"] > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({parsed['amount']:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))
        elif parsed["amount"] == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))

        return issues

    def validate(
        self,
        draft: TransactionDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: Raw form input
            today: Reference date for the future-date check

        Returns:
            ValidationResult; carries the Transaction when valid
        """
        today = today or date.today()

        # Stage 1: Schema validation
        parsed, issues = self._validate_schema(draft)
        schema_valid = not any(issue.severity == "error" for issue in issues)

        # Only run stage 2 if stage 1 passes
        transaction = None
        if schema_valid:
            issues.extend(self._validate_semantic(parsed, today))
            transaction = Transaction(**parsed)

        return ValidationResult(
            schema_valid=schema_valid,
            is_valid=schema_valid,
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
            transaction=transaction,
        )

    def create_transaction(
        self,
        draft: TransactionDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Validate a draft that must become a Transaction.

        Returns:
            The passing ValidationResult; .transaction is set and
            .warnings lists anything the user should double-check

        Raises:
            InvalidTransactionError: If schema validation fails
        """
        result = self.validate(draft, today)
        if not result.is_valid:
            raise InvalidTransactionError(result)
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if not result.schema_valid:
            lines.append("The entry could not be saved:")
            for issue in result.errors:
                lines.append(f"   - {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     ({issue.suggested_fix})")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   - {warning}")

        return "\n".join(lines)
