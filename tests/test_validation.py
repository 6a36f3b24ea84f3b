"""
Tests for the two-stage entry validator.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.models.ledger import TransactionDraft, TransactionType
from src.validation import InvalidTransactionError, TransactionValidator, parse_amount


TODAY = date(2025, 1, 6)


def _draft(**overrides) -> TransactionDraft:
    fields = {
        "date": "2025-01-05",
        "description": "Groceries",
        "amount": "42.5",
        "type": "expense",
        "category": "Food",
    }
    fields.update(overrides)
    return TransactionDraft(**fields)


class TestParseAmount:
    """Tests for parse_amount."""

    @pytest.mark.parametrize("raw,expected", [
        ("12.50", Decimal("12.50")),
        ("1,234.5", Decimal("1234.5")),
        (7, Decimal("7")),
        (" 3 ", Decimal("3")),
    ])
    def test_numbers(self, raw, expected):
        """Test numeric input in several shapes."""
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, True, "abc", "NaN", "Infinity", ""])
    def test_not_numbers(self, raw):
        """Test non-numeric and non-finite input."""
        assert parse_amount(raw) is None


class TestSchemaValidation:
    """Tests for stage 1."""

    def test_valid_entry(self):
        """Test a complete draft becomes a Transaction."""
        result = TransactionValidator(Decimal("100000"), 1).validate(_draft(), TODAY)
        assert result.is_valid
        assert result.transaction.amount == Decimal("42.50")
        assert result.transaction.type == TransactionType.EXPENSE
        assert result.transaction.date == date(2025, 1, 5)
        assert result.issues == []

    def test_missing_fields(self):
        """Test every required field is reported."""
        result = TransactionValidator(Decimal("100000"), 1).validate(TransactionDraft(), TODAY)
        assert not result.is_valid
        assert {issue.field for issue in result.errors} == {
            "date", "description", "amount", "type", "category",
        }
        assert result.transaction is None

    def test_negative_amount_rejected(self):
        """Test negative amounts are errors."""
        result = TransactionValidator(Decimal("100000"), 1).validate(_draft(amount="-5"), TODAY)
        assert not result.is_valid
        assert result.errors[0].issue_type == "invalid_value"

    def test_non_numeric_amount_rejected(self):
        """Test text amounts are errors."""
        result = TransactionValidator(Decimal("100000"), 1).validate(_draft(amount="ten"), TODAY)
        assert result.errors[0].field == "amount"

    def test_unknown_type_rejected(self):
        """Test types outside the enum are errors."""
        result = TransactionValidator(Decimal("100000"), 1).validate(_draft(type="refund"), TODAY)
        assert result.errors[0].field == "type"
        assert "income, fixed_expense, expense" in result.errors[0].message

    def test_bad_date_rejected(self):
        """Test unparseable dates are errors."""
        result = TransactionValidator(Decimal("100000"), 1).validate(_draft(date="31/01/2025"), TODAY)
        assert result.errors[0].field == "date"

    def test_long_description_rejected(self):
        """Test the description length limit."""
        result = TransactionValidator(Decimal("100000"), 1).validate(
            _draft(description="x" * 201), TODAY
        )
        assert result.errors[0].issue_type == "too_long"

    def test_create_transaction_raises(self):
        """Test create_transaction raises with the error messages."""
        validator = TransactionValidator(Decimal("100000"), 1)
        with pytest.raises(InvalidTransactionError) as exc_info:
            validator.create_transaction(_draft(amount=None, category=""), TODAY)
        assert "Amount is required" in str(exc_info.value)
        assert "Category is required" in str(exc_info.value)
        assert exc_info.value.result.errors

    def test_create_transaction_returns_result(self):
        """Test a passing draft comes back with its transaction and warnings."""
        validator = TransactionValidator(Decimal("100000"), 1)
        result = validator.create_transaction(_draft(amount="0"), TODAY)
        assert result.transaction.amount == Decimal("0.00")
        assert result.warnings == ["Amount is zero"]

    @pytest.mark.parametrize("amount", ["1e30", "1000000000000", "99999999999999999999999999999"])
    def test_amount_above_ceiling_rejected(self, amount):
        """Test amounts too large to hold in cents are errors, not crashes."""
        result = TransactionValidator(Decimal("100000"), 1).validate(_draft(amount=amount), TODAY)
        assert not result.is_valid
        assert result.errors[0].field == "amount"
        assert result.errors[0].issue_type == "invalid_value"
        assert "must not exceed" in result.errors[0].message

    def test_amount_at_ceiling_accepted(self):
        """Test the largest allowed amount is accepted (with a warning)."""
        result = TransactionValidator(Decimal("100000"), 1).validate(
            _draft(amount="999999999999.99"), TODAY
        )
        assert result.is_valid
        assert result.transaction.amount == Decimal("999999999999.99")


class TestSemanticValidation:
    """Tests for stage 2 (warnings only)."""

    def test_future_date_warns(self):
        """Test dates beyond the tolerance are flagged but accepted."""
        result = TransactionValidator(Decimal("100000"), 1).validate(
            _draft(date="2025-01-10"), TODAY
        )
        assert result.is_valid
        assert any("future" in warning for warning in result.warnings)

    def test_tomorrow_within_tolerance(self):
        """Test one day ahead is tolerated."""
        result = TransactionValidator(Decimal("100000"), 1).validate(
            _draft(date="2025-01-07"), TODAY
        )
        assert result.warnings == []

    def test_large_amount_warns(self):
        """Test amounts above the maximum are flagged."""
        result = TransactionValidator(Decimal("1000"), 1).validate(_draft(amount="5000"), TODAY)
        assert result.is_valid
        assert any("unusually high" in warning for warning in result.warnings)

    def test_zero_amount_warns(self):
        """Test zero amounts are flagged."""
        result = TransactionValidator(Decimal("1000"), 1).validate(_draft(amount="0"), TODAY)
        assert result.is_valid
        assert result.warnings == ["Amount is zero"]

    def test_user_friendly_summary(self):
        """Test the summary lists errors with their fixes."""
        validator = TransactionValidator(Decimal("1000"), 1)
        ok = validator.validate(_draft(), TODAY)
        assert validator.get_user_friendly_summary(ok) == "All checks passed."

        bad = validator.validate(_draft(amount="-1"), TODAY)
        summary = validator.get_user_friendly_summary(bad)
        assert summary.startswith("The entry could not be saved:")
        assert "Amount must not be negative" in summary


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
