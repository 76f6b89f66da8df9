"""
Reconciliation review service.

Everything a reviewer does with a statement after upload: (re)parse it,
link records to expenses, ignore records, create expenses from records,
correct record types and finally mark the statement completed.

Each manual action is a single store update; unknown IDs raise
RecordNotFoundError instead of silently doing nothing.
"""

import calendar
import logging
import re
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from ..config import Config
from ..filestore import FileStore
from ..jobs import PARSE_STATEMENT_JOB, JobQueue, JobStatus
from ..ledger import ExpenseDraft, ExpenseLedger, ExpenseStatus, PaymentType
from ..schemas.statement import MatchConfidence, MatchStatus, StatementStatus, TransactionType
from ..state_store import StateStore, StatementRecord, TransactionRecord

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

DEFAULT_IGNORE_REASON = "Manually ignored"

# Record type -> payment type of an expense created from it
PAYMENT_TYPE_BY_TRANSACTION = {
    TransactionType.CHECK: PaymentType.CHECK,
    TransactionType.DEBIT: PaymentType.DEBIT,
    TransactionType.CREDIT: PaymentType.CREDIT,
}


class ReconciliationError(Exception):
    """Base exception for review actions."""

    pass


class RecordNotFoundError(ReconciliationError):
    """Statement, transaction or expense does not exist."""

    def __init__(self, kind: str, record_id: int):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class StatementExistsError(ReconciliationError):
    """A statement for this calendar month was already uploaded."""

    def __init__(self, statement_month: str, existing_id: int | None = None):
        self.statement_month = statement_month
        self.existing_id = existing_id
        super().__init__(f"A statement for {statement_month} already exists")


class ExpenseAlreadyLinkedError(ReconciliationError):
    """The expense is already linked to another record of the statement."""

    def __init__(self, expense_id: int, statement_id: int):
        self.expense_id = expense_id
        self.statement_id = statement_id
        super().__init__(
            f"Expense {expense_id} is already linked to a transaction of statement {statement_id}"
        )


@dataclass
class ReconciliationStats:
    """Summary counts and totals of one statement's records."""

    total_transactions: int = 0
    total_credits: Decimal = Decimal("0.00")
    total_debits: Decimal = Decimal("0.00")
    matched_count: int = 0
    unmatched_count: int = 0
    ignored_count: int = 0
    created_count: int = 0
    # Computed per-bucket totals (absolute values)
    electronic_deposits: Decimal = Decimal("0.00")
    electronic_payments: Decimal = Decimal("0.00")
    checks_paid: Decimal = Decimal("0.00")
    service_fees: Decimal = Decimal("0.00")
    by_status: dict[str, int] = field(default_factory=dict)

    @property
    def reviewed_count(self) -> int:
        return self.total_transactions - self.unmatched_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_transactions": self.total_transactions,
            "total_credits": str(self.total_credits),
            "total_debits": str(self.total_debits),
            "matched_count": self.matched_count,
            "unmatched_count": self.unmatched_count,
            "ignored_count": self.ignored_count,
            "created_count": self.created_count,
            "electronic_deposits": str(self.electronic_deposits),
            "electronic_payments": str(self.electronic_payments),
            "checks_paid": str(self.checks_paid),
            "service_fees": str(self.service_fees),
        }


def last_day_of_month(statement_month: str) -> str:
    """ISO date of the last day of a YYYY-MM month."""
    match = MONTH_PATTERN.match(statement_month)
    if not match:
        raise ValueError(f"Invalid statement month {statement_month!r}, expected YYYY-MM")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid statement month {statement_month!r}")
    return date(year, month, calendar.monthrange(year, month)[1]).isoformat()


class ReconciliationService:
    """
    Review operations over parsed statements.

    Works against whichever expense ledger backend is configured; the
    ledger is only written on create_expense_from_transaction and on
    unmatching a record whose expense was created from it.
    """

    def __init__(
        self,
        store: StateStore,
        queue: JobQueue,
        ledger: ExpenseLedger,
        filestore: FileStore,
        config: Config,
    ):
        self.store = store
        self.queue = queue
        self.ledger = ledger
        self.filestore = filestore
        self.config = config

    # Lookups

    def get_statement(self, statement_id: int) -> StatementRecord:
        statement = self.store.get_statement(statement_id)
        if statement is None:
            raise RecordNotFoundError("Statement", statement_id)
        return statement

    def get_transaction(self, txn_id: int) -> TransactionRecord:
        txn = self.store.get_transaction(txn_id)
        if txn is None:
            raise RecordNotFoundError("Transaction", txn_id)
        return txn

    def list_transactions(self, statement_id: int) -> list[TransactionRecord]:
        self.get_statement(statement_id)
        return self.store.list_transactions(statement_id)

    # Statement lifecycle

    def upload_statement(
        self, statement_month: str, file_path: Path | str, notes: str = ""
    ) -> tuple[int, int]:
        """
        Store a statement file and queue it for parsing.

        Returns:
            (statement_id, job_id)

        Raises:
            ValueError: malformed month
            StatementExistsError: the month already has a statement
        """
        statement_date = last_day_of_month(statement_month)

        existing = self.store.get_statement_by_month(statement_month)
        if existing is not None:
            raise StatementExistsError(statement_month, existing.id)

        file_path = Path(file_path)
        identifier = self.filestore.save(file_path.name, file_path)

        try:
            statement_id = self.store.create_statement(
                statement_month=statement_month,
                statement_date=statement_date,
                file_path=identifier,
                notes=notes,
            )
        except sqlite3.IntegrityError as e:
            self.filestore.delete(identifier)
            raise StatementExistsError(statement_month) from e

        job_id = self._enqueue_parse(statement_id, identifier)
        logger.info(
            f"Uploaded statement {statement_id} for {statement_month} "
            f"({file_path.name}), parse job {job_id}"
        )
        return statement_id, job_id

    def reparse(self, statement_id: int) -> int:
        """Queue a fresh parse of an existing statement. Returns the job ID."""
        statement = self.get_statement(statement_id)

        self.store.update_statement_status(statement_id, StatementStatus.PENDING)
        job_id = self._enqueue_parse(statement_id, statement.file_path)
        logger.info(f"Re-parse of statement {statement_id} queued as job {job_id}")
        return job_id

    def _enqueue_parse(self, statement_id: int, file_identifier: str) -> int:
        job_id = self.queue.enqueue(
            PARSE_STATEMENT_JOB,
            {"statement_id": statement_id, "file_path": file_identifier},
            max_attempts=self.config.worker.max_attempts,
        )
        self.store.set_statement_parse_job(statement_id, job_id)
        return job_id

    def start_review(self, statement_id: int) -> None:
        self.get_statement(statement_id)
        self.store.update_statement_status(statement_id, StatementStatus.RECONCILING)

    def complete(self, statement_id: int) -> None:
        """Mark the statement reconciled."""
        self.get_statement(statement_id)
        self.store.update_statement_status(statement_id, StatementStatus.COMPLETED)
        logger.info(f"Statement {statement_id} marked completed")

    def job_status(self, job_id: int) -> JobStatus:
        return self.queue.status(job_id)

    # Manual record actions

    def match_manual(self, txn_id: int, expense_id: int) -> None:
        """
        Link a record to an expense chosen by the reviewer.

        The expense may not already be linked to another record of the same
        statement. An expense previously created from this record is
        deleted from the ledger, as on unmatch.
        """
        txn = self.get_transaction(txn_id)
        if self.ledger.get_expense(expense_id) is None:
            raise RecordNotFoundError("Expense", expense_id)

        if (
            txn.matched_expense_id != expense_id
            and expense_id in self.store.get_linked_expense_ids(txn.statement_id)
        ):
            raise ExpenseAlreadyLinkedError(expense_id, txn.statement_id)

        if (
            txn.match_status == MatchStatus.CREATED
            and txn.matched_expense_id is not None
            and txn.matched_expense_id != expense_id
        ):
            self.ledger.delete_expense(txn.matched_expense_id)

        self.store.match_transaction(txn_id, expense_id, confidence=MatchConfidence.MANUAL)
        logger.info(f"Transaction {txn_id} manually matched to expense {expense_id}")

    def unmatch(self, txn_id: int) -> None:
        """
        Clear a record's link.

        An expense that was created from this record is deleted from the
        ledger first.
        """
        txn = self.get_transaction(txn_id)

        if txn.match_status == MatchStatus.CREATED and txn.matched_expense_id is not None:
            self.ledger.delete_expense(txn.matched_expense_id)

        self.store.unmatch_transaction(txn_id)
        logger.info(f"Transaction {txn_id} unmatched")

    def ignore(self, txn_id: int, reason: str = "") -> None:
        self.get_transaction(txn_id)
        self.store.ignore_transaction(txn_id, reason or DEFAULT_IGNORE_REASON)

    def create_expense_from_transaction(self, txn_id: int, vendor_name: str = "") -> int:
        """
        Create a paid expense mirroring a record and link the two.

        Returns:
            The new expense ID
        """
        txn = self.get_transaction(txn_id)
        vendor_name = vendor_name or txn.vendor_hint or txn.description

        draft = ExpenseDraft(
            vendor_name=vendor_name,
            amount=abs(txn.amount),
            date=txn.posting_date,
            date_paid=txn.posting_date,
            status=ExpenseStatus.PAID,
            payment_type=PAYMENT_TYPE_BY_TRANSACTION.get(txn.transaction_type, PaymentType.DEBIT),
            check_number=txn.check_number,
            notes=f"Created from bank statement: {txn.description}",
        )
        expense_id = self.ledger.create_expense(draft)

        if not self.store.mark_transaction_created(txn_id, expense_id):
            # Record vanished between lookup and update
            self.ledger.delete_expense(expense_id)
            raise RecordNotFoundError("Transaction", txn_id)

        logger.info(f"Created expense {expense_id} from transaction {txn_id}")
        return expense_id

    def update_type(self, txn_id: int, transaction_type: TransactionType | str) -> None:
        """Correct a record's type; its sign is re-derived and it becomes unmatched."""
        new_type = TransactionType(transaction_type)
        if not self.store.update_transaction_type(txn_id, new_type):
            raise RecordNotFoundError("Transaction", txn_id)

    # Stats

    def get_stats(self, statement_id: int) -> ReconciliationStats:
        stats = ReconciliationStats()

        for txn in self.list_transactions(statement_id):
            stats.total_transactions += 1
            stats.by_status[txn.match_status.value] = (
                stats.by_status.get(txn.match_status.value, 0) + 1
            )

            if txn.amount > 0:
                stats.total_credits += txn.amount
            elif txn.amount < 0:
                stats.total_debits += abs(txn.amount)

            if txn.transaction_type == TransactionType.DEPOSIT:
                stats.electronic_deposits += abs(txn.amount)
            elif txn.transaction_type == TransactionType.DEBIT:
                stats.electronic_payments += abs(txn.amount)
            elif txn.transaction_type == TransactionType.CHECK:
                stats.checks_paid += abs(txn.amount)
            elif txn.transaction_type == TransactionType.FEE:
                stats.service_fees += abs(txn.amount)

        stats.matched_count = stats.by_status.get(MatchStatus.MATCHED.value, 0)
        stats.unmatched_count = stats.by_status.get(MatchStatus.UNMATCHED.value, 0)
        stats.ignored_count = stats.by_status.get(MatchStatus.IGNORED.value, 0)
        stats.created_count = stats.by_status.get(MatchStatus.CREATED.value, 0)
        return stats
