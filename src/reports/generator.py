"""
Report Generator

Turns a month's stats into a MonthlyReport and stores it apart from the
MonthlyArchive, so reports can be listed and opened without loading the
archived transactions.

DESIGN DECISION: Report values are formatted once, at generation time.
A stored report is a document, not a view: later changes to the currency
symbol do not rewrite historical reports.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from src.models.ledger import (
    CategoryBreakdownRow,
    DailyBreakdownRow,
    MonthlyReport,
    MonthlyStats,
    ReportLine,
    ReportListing,
    utc_now,
)
from src.ledger.repository import LedgerRepository
from src.periods.keys import StoreKeys, month_name, period_from_key


# Summary labels, in display order
TOTAL_INCOME = "Total income"
FIXED_EXPENSES = "Fixed expenses"
OTHER_EXPENSES = "Other expenses"
TOTAL_SPENDING = "Total spending"
MONTHLY_BALANCE = "Monthly balance"
TRANSACTIONS = "Transactions"
ACTIVE_DAYS = "Active days"
DAILY_AVERAGE_INCOME = "Daily average income"
DAILY_AVERAGE_SPENDING = "Daily average spending"
DAYS_CLOSED = "Days closed"


def format_currency(amount: Decimal, symbol: str = "$") -> str:
    """'$1234.50', or '-$20.00' for negative amounts."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):.2f}"


def report_title(month: str) -> str:
    return f"{month_name(month)} Financial Report"


def build_report(
    username: str,
    month: str,
    stats: MonthlyStats,
    currency_symbol: str = "$",
    generated_at: Optional[datetime] = None,
) -> MonthlyReport:
    """
    Assemble the report for a closed month.

    Pure: nothing is read or written.
    """
    def money(amount: Decimal) -> str:
        return format_currency(amount, currency_symbol)

    summary = [
        ReportLine(label=TOTAL_INCOME, value=money(stats.total_income)),
        ReportLine(label=FIXED_EXPENSES, value=money(stats.total_fixed_expense)),
        ReportLine(label=OTHER_EXPENSES, value=money(stats.total_expense)),
        ReportLine(label=TOTAL_SPENDING, value=money(stats.total_spending)),
        ReportLine(label=MONTHLY_BALANCE, value=money(stats.balance)),
        ReportLine(label=TRANSACTIONS, value=f"{stats.transaction_count} entries"),
        ReportLine(label=ACTIVE_DAYS, value=f"{stats.days_count} days"),
        ReportLine(label=DAILY_AVERAGE_INCOME, value=money(stats.daily_average.income)),
        ReportLine(label=DAILY_AVERAGE_SPENDING, value=money(stats.daily_average.spending)),
        ReportLine(
            label=DAYS_CLOSED,
            value=f"{stats.daily_archive_count} days" if stats.daily_archive_count else "unknown",
        ),
    ]

    categories = [
        CategoryBreakdownRow(
            category=name,
            amount=money(stat.amount),
            count=f"{stat.count} entries",
            type=stat.type.label,
        )
        for name, stat in stats.category_stats.items()
    ]

    daily = None
    if stats.daily_summaries:
        daily = [
            DailyBreakdownRow(
                date=entry.date,
                income=money(entry.summary.total_income),
                fixed_expense=money(entry.summary.total_fixed_expense),
                expense=money(entry.summary.total_expense),
                balance=money(entry.summary.balance),
            )
            for entry in stats.daily_summaries
        ]

    return MonthlyReport(
        key=StoreKeys.monthly_report(username, month),
        month=month,
        title=report_title(month),
        username=username,
        generated_at=generated_at or utc_now(),
        summary=summary,
        category_breakdown=categories,
        daily_breakdown=daily,
    )


def render_report_text(report: MonthlyReport) -> str:
    """Plain-text rendering used by the report detail view."""
    lines = [
        report.title,
        "",
        f"Generated: {report.generated_at.strftime('%Y-%m-%d %H:%M UTC')}",
        f"User: {report.username}",
        "",
        "Summary:",
    ]
    lines.extend(f"  - {line.label}: {line.value}" for line in report.summary)

    lines.extend(["", "By category:"])
    if report.category_breakdown:
        lines.extend(
            f"  [{row.type}] {row.category}: {row.amount} ({row.count})"
            for row in report.category_breakdown
        )
    else:
        lines.append("  (none)")

    if report.daily_breakdown:
        lines.extend(["", "By day:"])
        lines.extend(
            f"  {row.date.isoformat()}: income {row.income}, fixed {row.fixed_expense}, "
            f"other {row.expense}, balance {row.balance}"
            for row in report.daily_breakdown
        )

    return "\n".join(lines)


class ReportGenerator:
    """Builds, stores and lists monthly reports."""

    def __init__(self, repository: LedgerRepository, currency_symbol: str = "$"):
        self._repo = repository
        self._currency_symbol = currency_symbol

    async def generate(self, username: str, month: str, stats: MonthlyStats) -> MonthlyReport:
        """Build the report and store it under its monthly-report key."""
        report = build_report(username, month, stats, self._currency_symbol)
        await self._repo.save_report(report)
        return report

    async def list_reports(self, username: str) -> list[ReportListing]:
        """Every stored report for a user, newest month first."""
        listings = []
        for key in await self._repo.list_report_keys(username):
            report = await self._repo.get_report(key)
            if report is None:
                continue
            listings.append(ReportListing(
                key=key,
                month=period_from_key(key),
                title=report.title,
                generated_at=report.generated_at,
                balance=report.summary_value(MONTHLY_BALANCE),
            ))
        listings.sort(key=lambda item: item.month, reverse=True)
        return listings

    async def get_report(self, key: str) -> Optional[MonthlyReport]:
        return await self._repo.get_report(key)
