"""
Expense ledger interface.

The ledger is the system of record for expenses; reconciliation only reads
paid expenses from it and creates or deletes expenses on the reviewer's
request.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any


class PaymentType:
    """Allowed expense payment types."""

    CASH = "cash"
    CHECK = "check"
    DEBIT = "debit"
    CREDIT = "credit"
    NONE = ""


class ExpenseStatus:
    PAID = "paid"
    NOT_PAID = "not_paid"


@dataclass
class Expense:
    """An expense as held by the ledger. Amount is always positive."""

    id: int
    vendor_name: str
    amount: Decimal
    date: str  # YYYY-MM-DD
    date_paid: str | None
    status: str
    payment_type: str = ""
    check_number: str = ""
    notes: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Expense":
        """Create from a store row or API object."""
        return cls(
            id=int(data["id"]),
            vendor_name=data.get("vendor_name") or "",
            amount=Decimal(str(data["amount"])),
            date=data.get("date") or "",
            date_paid=data.get("date_paid") or None,
            status=data.get("status") or ExpenseStatus.NOT_PAID,
            payment_type=data.get("payment_type") or "",
            check_number=data.get("check_number") or "",
            notes=data.get("notes") or "",
        )


@dataclass
class ExpenseDraft:
    """A new expense to be created in the ledger."""

    vendor_name: str
    amount: Decimal
    date: str
    date_paid: str | None = None
    status: str = ExpenseStatus.PAID
    payment_type: str = PaymentType.NONE
    check_number: str = ""
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_name": self.vendor_name,
            "amount": str(self.amount),
            "date": self.date,
            "date_paid": self.date_paid,
            "status": self.status,
            "payment_type": self.payment_type,
            "check_number": self.check_number,
            "notes": self.notes,
        }


class ExpenseLedger(ABC):
    """Abstract expense ledger."""

    @abstractmethod
    def list_paid_expenses(self, start: str, end: str) -> list[Expense]:
        """Paid expenses whose date_paid falls in [start, end] (YYYY-MM-DD)."""
        pass

    @abstractmethod
    def get_expense(self, expense_id: int) -> Expense | None:
        pass

    @abstractmethod
    def create_expense(self, draft: ExpenseDraft) -> int:
        """Create an expense. Returns its ID."""
        pass

    @abstractmethod
    def delete_expense(self, expense_id: int) -> None:
        pass
