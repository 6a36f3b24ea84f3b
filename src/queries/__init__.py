"""Query execution package."""

from src.queries.executor import TransactionQueryExecutor

__all__ = ["TransactionQueryExecutor"]
