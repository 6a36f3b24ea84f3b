"""Entry validation package."""

from src.validation.validator import (
    InvalidTransactionError,
    TransactionValidator,
    parse_amount,
)

__all__ = [
    "InvalidTransactionError",
    "TransactionValidator",
    "parse_amount",
]
