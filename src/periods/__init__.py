"""Period key resolution."""

from src.periods.keys import (
    StoreKeys,
    day_key,
    first_day_of_month,
    month_key,
    month_name,
    parse_day,
    period_from_key,
    previous_day,
    previous_month_key,
    validate_month_key,
    validate_username,
)

__all__ = [
    "StoreKeys",
    "day_key",
    "first_day_of_month",
    "month_key",
    "month_name",
    "parse_day",
    "period_from_key",
    "previous_day",
    "previous_month_key",
    "validate_month_key",
    "validate_username",
]
