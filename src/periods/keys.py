"""
Period Key Resolver

Pure functions mapping calendar dates and usernames to the canonical
keys every ledger, archive and report is stored under.

Nothing here reads a clock: the same inputs always give the same keys,
which keeps closing reproducible and testable.

Key layout ({user} may not contain ':'):
    transactions:{user}:{YYYY-MM}          open ledger for a month
    daily-archive:{user}:{YYYY-MM-DD}      closed day
    monthly-archive:{user}:{YYYY-MM}       closed month
    monthly-report:{user}:{YYYY-MM}        report for a closed month
    delete-log:{user}:{YYYY-MM-DD}         entries pruned by a daily close
    close-markers:{user}                   last close date / closed months
    spending-limit:{user}                  per-user limit

Day-keys start with their month-key, so every daily archive of a month
is found by one prefix scan.
"""

import re
from datetime import date, datetime, timedelta


MONTH_KEY_FORMAT = "%Y-%m"
DAY_KEY_FORMAT = "%Y-%m-%d"

KEY_SEPARATOR = ":"

LEDGER_NAMESPACE = "transactions"
DAILY_ARCHIVE_NAMESPACE = "daily-archive"
MONTHLY_ARCHIVE_NAMESPACE = "monthly-archive"
MONTHLY_REPORT_NAMESPACE = "monthly-report"
DELETE_LOG_NAMESPACE = "delete-log"
CLOSE_MARKERS_NAMESPACE = "close-markers"
SPENDING_LIMIT_NAMESPACE = "spending-limit"

_MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def validate_username(username: str) -> str:
    """
    Check a username can be embedded in a store key.

    Raises:
        ValueError: If the name is blank or contains the key separator.
    """
    if not username or not username.strip():
        raise ValueError("Username must not be empty")
    if KEY_SEPARATOR in username:
        raise ValueError(f"Username must not contain '{KEY_SEPARATOR}'")
    return username.strip()


def month_key(day: date) -> str:
    """Month-key (YYYY-MM) for a calendar day."""
    return day.strftime(MONTH_KEY_FORMAT)


def day_key(day: date) -> str:
    """Day-key (YYYY-MM-DD); always prefixed by its month-key."""
    return day.strftime(DAY_KEY_FORMAT)


def parse_day(value: str | date) -> date:
    """Parse an ISO day string (datetimes are truncated to their date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip()[:10], DAY_KEY_FORMAT).date()


def validate_month_key(key: str) -> str:
    if not _MONTH_KEY_RE.match(key):
        raise ValueError(f"Invalid month key: {key!r} (expected YYYY-MM)")
    return key


def first_day_of_month(key: str) -> date:
    validate_month_key(key)
    return datetime.strptime(key, MONTH_KEY_FORMAT).date()


def previous_day(day: date) -> date:
    """
    Calendar-day decrement.

    Operates on dates, never on instants, so a DST change or timezone
    fallback cannot shift the result.
    """
    return day - timedelta(days=1)


def previous_month_key(value: str | date) -> str:
    """Month-key of the month before a day or month-key."""
    first = first_day_of_month(value) if isinstance(value, str) else value.replace(day=1)
    return month_key(previous_day(first))


def month_name(key: str) -> str:
    """Human-readable month, e.g. 'January 2025'."""
    return first_day_of_month(key).strftime("%B %Y")


def user_scope(namespace: str, username: str) -> str:
    """Fully-qualified prefix for one user within a namespace."""
    return f"{namespace}{KEY_SEPARATOR}{validate_username(username)}{KEY_SEPARATOR}"


class StoreKeys:
    """
    Builders for every store key the ledger uses.

    Grouped on a class so call sites read as StoreKeys.daily_archive(...).
    """

    @staticmethod
    def ledger(username: str, month: str) -> str:
        return user_scope(LEDGER_NAMESPACE, username) + validate_month_key(month)

    @staticmethod
    def ledger_prefix(username: str) -> str:
        return user_scope(LEDGER_NAMESPACE, username)

    @staticmethod
    def daily_archive(username: str, day: date) -> str:
        return user_scope(DAILY_ARCHIVE_NAMESPACE, username) + day_key(day)

    @staticmethod
    def daily_archive_user_prefix(username: str) -> str:
        return user_scope(DAILY_ARCHIVE_NAMESPACE, username)

    @staticmethod
    def daily_archive_prefix(username: str, month: str) -> str:
        """Prefix matching every day-key of the month (note trailing '-')."""
        return user_scope(DAILY_ARCHIVE_NAMESPACE, username) + validate_month_key(month) + "-"

    @staticmethod
    def monthly_archive(username: str, month: str) -> str:
        return user_scope(MONTHLY_ARCHIVE_NAMESPACE, username) + validate_month_key(month)

    @staticmethod
    def monthly_archive_prefix(username: str) -> str:
        return user_scope(MONTHLY_ARCHIVE_NAMESPACE, username)

    @staticmethod
    def monthly_report(username: str, month: str) -> str:
        return user_scope(MONTHLY_REPORT_NAMESPACE, username) + validate_month_key(month)

    @staticmethod
    def monthly_report_prefix(username: str) -> str:
        return user_scope(MONTHLY_REPORT_NAMESPACE, username)

    @staticmethod
    def deletion_log(username: str, day: date) -> str:
        return user_scope(DELETE_LOG_NAMESPACE, username) + day_key(day)

    @staticmethod
    def close_markers(username: str) -> str:
        return f"{CLOSE_MARKERS_NAMESPACE}{KEY_SEPARATOR}{validate_username(username)}"

    @staticmethod
    def spending_limit(username: str) -> str:
        return f"{SPENDING_LIMIT_NAMESPACE}{KEY_SEPARATOR}{validate_username(username)}"


def period_from_key(key: str) -> str:
    """Trailing period component (month- or day-key) of a store key."""
    return key.rsplit(KEY_SEPARATOR, 1)[-1]
