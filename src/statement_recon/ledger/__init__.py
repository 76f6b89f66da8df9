"""
Expense ledger adapters.

Provides:
- SQLiteExpenseLedger: expenses table in the state database (default)
- HttpExpenseLedger: remote JSON bookkeeping service
- create_ledger(): choose by ledger.backend config

Reconciliation reads paid expenses and creates/deletes expenses only on an
explicit reviewer action.
"""

from ..config import Config
from ..state_store import StateStore
from .base import Expense, ExpenseDraft, ExpenseLedger, ExpenseStatus, PaymentType
from .http_client import HttpExpenseLedger, LedgerAPIError, LedgerConnectionError, LedgerError
from .sqlite_ledger import SQLiteExpenseLedger


def create_ledger(config: Config, store: StateStore) -> ExpenseLedger:
    """Build the configured ledger backend."""
    if config.ledger.backend == "http":
        if not config.ledger.base_url:
            raise LedgerError("ledger.base_url is required for the http backend")
        return HttpExpenseLedger(
            base_url=config.ledger.base_url,
            token=config.ledger.token,
            timeout=config.ledger.timeout_seconds,
            max_retries=config.ledger.max_retries,
        )
    return SQLiteExpenseLedger(store)


__all__ = [
    "Expense",
    "ExpenseDraft",
    "ExpenseLedger",
    "ExpenseStatus",
    "HttpExpenseLedger",
    "LedgerAPIError",
    "LedgerConnectionError",
    "LedgerError",
    "PaymentType",
    "SQLiteExpenseLedger",
    "create_ledger",
]
