"""
Expense ledger kept in the state database's expenses table.
"""

import logging

from ..state_store import StateStore
from .base import Expense, ExpenseDraft, ExpenseLedger

logger = logging.getLogger(__name__)


class SQLiteExpenseLedger(ExpenseLedger):
    """Local ledger backed by StateStore."""

    def __init__(self, store: StateStore):
        self.store = store

    def list_paid_expenses(self, start: str, end: str) -> list[Expense]:
        return [Expense.from_dict(row) for row in self.store.list_paid_expenses(start, end)]

    def get_expense(self, expense_id: int) -> Expense | None:
        row = self.store.get_expense(expense_id)
        return Expense.from_dict(row) if row else None

    def create_expense(self, draft: ExpenseDraft) -> int:
        expense_id = self.store.create_expense(
            vendor_name=draft.vendor_name,
            amount=draft.amount,
            date=draft.date,
            date_paid=draft.date_paid,
            status=draft.status,
            payment_type=draft.payment_type,
            check_number=draft.check_number,
            notes=draft.notes,
        )
        logger.info(f"Created expense {expense_id}: {draft.vendor_name} {draft.amount}")
        return expense_id

    def delete_expense(self, expense_id: int) -> None:
        if self.store.delete_expense(expense_id):
            logger.info(f"Deleted expense {expense_id}")
        else:
            logger.warning(f"Expense {expense_id} not found for deletion")
