"""Period closing: aggregation, the closing engine and the boundary trigger."""

from src.closing.aggregator import build_monthly_stats, group_by_type, summarize
from src.closing.engine import ClosingEngine, merge_by_id
from src.closing.boundaries import BoundaryTrigger, evaluate_boundaries, is_month_close_due

__all__ = [
    "BoundaryTrigger",
    "ClosingEngine",
    "build_monthly_stats",
    "evaluate_boundaries",
    "group_by_type",
    "is_month_close_due",
    "merge_by_id",
    "summarize",
]
