"""
Personal Ledger - Source Package

A personal income/expense ledger with automatic period closing:
days and months are snapshotted into immutable archives, rolled up
into statistics and published as monthly reports.

DESIGN PRINCIPLES:
1. Archive first, prune second
2. Every close is an idempotent, retriable unit
3. No ambient state: closing depends only on the date and stored markers
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
