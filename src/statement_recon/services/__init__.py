"""Review services for uploaded statements."""

from .reconciliation import (
    ExpenseAlreadyLinkedError,
    ReconciliationError,
    ReconciliationService,
    ReconciliationStats,
    RecordNotFoundError,
    StatementExistsError,
)

__all__ = [
    "ExpenseAlreadyLinkedError",
    "ReconciliationError",
    "ReconciliationService",
    "ReconciliationStats",
    "RecordNotFoundError",
    "StatementExistsError",
]
