"""
State Store (SQLite-based).

Persistent DB for tracking:
- Uploaded statement documents (one per calendar month)
- Parsed bank transaction records and their matches
- The background job queue
- Locally kept expenses

Enforces uniqueness on statement_month.
"""

from .sqlite_store import (
    Job,
    JobState,
    StateStore,
    StatementRecord,
    TransactionRecord,
)

__all__ = [
    "Job",
    "JobState",
    "StateStore",
    "StatementRecord",
    "TransactionRecord",
]
