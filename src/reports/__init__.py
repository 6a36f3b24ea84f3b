"""Monthly report generation."""

from src.reports.generator import (
    ReportGenerator,
    build_report,
    format_currency,
    render_report_text,
    report_title,
)

__all__ = [
    "ReportGenerator",
    "build_report",
    "format_currency",
    "render_report_text",
    "report_title",
]
