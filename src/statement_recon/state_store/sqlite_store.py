"""
SQLite-based state store implementation.

Tables:
- statement_documents: One uploaded statement per calendar month
- bank_transactions: Parsed transaction records of a statement
- job_queue: Persisted background jobs (migration 001)
- expenses: Local expense ledger (migration 002)
"""

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from ..schemas.statement import (
    MatchConfidence,
    MatchStatus,
    ParsedStatement,
    ParsedTransaction,
    StatementStatus,
    TransactionType,
    signed_amount,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


class JobState(str, Enum):
    """Status of a queued job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StatementRecord:
    """An uploaded bank statement and its parsed header."""

    id: int
    statement_month: str  # YYYY-MM
    statement_date: str  # last day of the month
    file_path: str
    status: StatementStatus
    beginning_balance: Decimal
    ending_balance: Decimal
    account_last_four: str
    electronic_deposits: Decimal
    electronic_payments: Decimal
    checks_paid: Decimal
    service_fees: Decimal
    parse_job_id: int | None
    parsed_at: str | None
    reconciled_at: str | None
    notes: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "StatementRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            statement_month=row["statement_month"],
            statement_date=row["statement_date"],
            file_path=row["file_path"],
            status=StatementStatus(row["status"]),
            beginning_balance=Decimal(row["beginning_balance"]),
            ending_balance=Decimal(row["ending_balance"]),
            account_last_four=row["account_last_four"] or "",
            electronic_deposits=Decimal(row["electronic_deposits"]),
            electronic_payments=Decimal(row["electronic_payments"]),
            checks_paid=Decimal(row["checks_paid"]),
            service_fees=Decimal(row["service_fees"]),
            parse_job_id=row["parse_job_id"],
            parsed_at=row["parsed_at"],
            reconciled_at=row["reconciled_at"],
            notes=row["notes"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class TransactionRecord:
    """A persisted statement transaction and its reconciliation state."""

    id: int
    statement_id: int
    posting_date: str  # YYYY-MM-DD
    description: str
    amount: Decimal  # signed
    transaction_type: TransactionType
    category: str
    check_number: str
    vendor_hint: str
    reference_number: str
    match_status: MatchStatus
    match_confidence: MatchConfidence
    matched_expense_id: int | None
    matched_at: str | None
    notes: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "TransactionRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            statement_id=row["statement_id"],
            posting_date=row["posting_date"],
            description=row["description"],
            amount=Decimal(row["amount"]),
            transaction_type=TransactionType(row["transaction_type"]),
            category=row["category"] or "",
            check_number=row["check_number"] or "",
            vendor_hint=row["vendor_hint"] or "",
            reference_number=row["reference_number"] or "",
            match_status=MatchStatus(row["match_status"]),
            match_confidence=MatchConfidence(row["match_confidence"] or ""),
            matched_expense_id=row["matched_expense_id"],
            matched_at=row["matched_at"],
            notes=row["notes"] or "",
            created_at=row["created_at"],
        )


@dataclass
class Job:
    """A queued unit of background work."""

    id: int
    job_type: str
    payload: dict[str, Any]
    status: JobState
    progress: int
    result: str
    attempts: int
    max_attempts: int
    created_at: str
    started_at: str | None
    completed_at: str | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Job":
        """Create from database row."""
        return cls(
            id=row["id"],
            job_type=row["job_type"],
            payload=json.loads(row["payload"]) if row["payload"] else {},
            status=JobState(row["status"]),
            progress=row["progress"],
            result=row["result"] or "",
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            created_at=row["created_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )


class StateStore:
    """
    SQLite-based state store for statement reconciliation.

    Provides persistent tracking of:
    - Uploaded statements and their parse state
    - Parsed transaction records and their matches
    - The background job queue
    - Locally kept expenses

    Every method opens its own connection, so one instance may be shared by
    the worker thread and the review surface.
    """

    SCHEMA_VERSION = 1
    DEFAULT_MAX_ATTEMPTS = 3
    BUSY_TIMEOUT_SECONDS = 30.0

    def __init__(self, db_path: Path | str, run_migrations: bool = True):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path), timeout=self.BUSY_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _immediate_transaction(self) -> Iterator[sqlite3.Connection]:
        """Transaction that takes the write lock up front (BEGIN IMMEDIATE)."""
        conn = self._get_connection()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            # Schema version tracking
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            # One statement document per calendar month
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS statement_documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    statement_month TEXT NOT NULL UNIQUE,
                    statement_date TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    beginning_balance TEXT NOT NULL DEFAULT '0.00',
                    ending_balance TEXT NOT NULL DEFAULT '0.00',
                    account_last_four TEXT,
                    electronic_deposits TEXT NOT NULL DEFAULT '0.00',
                    electronic_payments TEXT NOT NULL DEFAULT '0.00',
                    checks_paid TEXT NOT NULL DEFAULT '0.00',
                    service_fees TEXT NOT NULL DEFAULT '0.00',
                    parse_job_id INTEGER,
                    parsed_at TEXT,
                    reconciled_at TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            # Parsed transaction records
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bank_transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    statement_id INTEGER NOT NULL,
                    posting_date TEXT NOT NULL,
                    description TEXT NOT NULL,
                    amount TEXT NOT NULL,  -- signed Decimal
                    transaction_type TEXT NOT NULL,
                    category TEXT,
                    check_number TEXT,
                    vendor_hint TEXT,
                    reference_number TEXT,
                    match_status TEXT NOT NULL DEFAULT 'unmatched',
                    match_confidence TEXT NOT NULL DEFAULT '',
                    matched_expense_id INTEGER,
                    matched_at TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (statement_id) REFERENCES statement_documents(id) ON DELETE CASCADE
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_bank_transactions_statement "
                "ON bank_transactions(statement_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_bank_transactions_match_status "
                "ON bank_transactions(match_status)"
            )

            # Set schema version
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            runner = MigrationRunner(conn)
            runner.run_pending()
        finally:
            conn.close()

    # Statement methods

    def create_statement(
        self,
        statement_month: str,
        statement_date: str,
        file_path: str,
        notes: str = "",
    ) -> int:
        """
        Create a statement document in pending state.

        Raises:
            sqlite3.IntegrityError: a statement for this month already exists
        """
        now = _now()

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO statement_documents
                (statement_month, statement_date, file_path, status, notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    statement_month,
                    statement_date,
                    file_path,
                    StatementStatus.PENDING.value,
                    notes,
                    now,
                    now,
                ),
            )
            return cursor.lastrowid or 0

    def get_statement(self, statement_id: int) -> StatementRecord | None:
        """Get a statement by ID."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM statement_documents WHERE id = ?", (statement_id,)
            ).fetchone()
            return StatementRecord.from_row(row) if row else None

    def get_statement_by_month(self, statement_month: str) -> StatementRecord | None:
        """Get the statement of a calendar month (YYYY-MM)."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM statement_documents WHERE statement_month = ?", (statement_month,)
            ).fetchone()
            return StatementRecord.from_row(row) if row else None

    def list_statements(self) -> list[StatementRecord]:
        """All statements, newest month first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM statement_documents ORDER BY statement_month DESC"
            ).fetchall()
            return [StatementRecord.from_row(row) for row in rows]

    def update_statement_status(self, statement_id: int, status: StatementStatus) -> bool:
        """
        Set a statement's status.

        Entering parsed stamps parsed_at; entering completed stamps
        reconciled_at. Returns False if the statement does not exist.
        """
        now = _now()
        updates = ["status = ?", "updated_at = ?"]
        params: list[Any] = [status.value, now]

        if status == StatementStatus.PARSED:
            updates.append("parsed_at = ?")
            params.append(now)
        elif status == StatementStatus.COMPLETED:
            updates.append("reconciled_at = ?")
            params.append(now)

        params.append(statement_id)

        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE statement_documents SET {', '.join(updates)} WHERE id = ?",
                params,
            )
            return cursor.rowcount > 0

    def set_statement_parse_job(self, statement_id: int, job_id: int) -> bool:
        """Record the parse job and move the statement to parsing."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE statement_documents
                SET parse_job_id = ?, status = ?, updated_at = ?
                WHERE id = ?
            """,
                (job_id, StatementStatus.PARSING.value, _now(), statement_id),
            )
            return cursor.rowcount > 0

    def save_statement_header(self, statement_id: int, parsed: ParsedStatement) -> bool:
        """Store parsed header fields and declared subtotals."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE statement_documents
                SET beginning_balance = ?, ending_balance = ?, account_last_four = ?,
                    electronic_deposits = ?, electronic_payments = ?, checks_paid = ?,
                    service_fees = ?, updated_at = ?
                WHERE id = ?
            """,
                (
                    str(parsed.beginning_balance),
                    str(parsed.ending_balance),
                    parsed.account_last_four,
                    str(parsed.electronic_deposits),
                    str(parsed.electronic_payments),
                    str(parsed.checks_paid),
                    str(parsed.service_fees),
                    _now(),
                    statement_id,
                ),
            )
            return cursor.rowcount > 0

    # Transaction methods

    def create_transaction(self, statement_id: int, txn: ParsedTransaction) -> int:
        """Insert one parsed transaction as unmatched. Returns the record ID."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO bank_transactions
                (statement_id, posting_date, description, amount, transaction_type,
                 category, check_number, vendor_hint, reference_number,
                 match_status, match_confidence, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    statement_id,
                    txn.posting_date,
                    txn.description,
                    str(txn.amount),
                    TransactionType(txn.transaction_type).value,
                    txn.category,
                    txn.check_number,
                    txn.vendor_hint,
                    txn.reference_number,
                    MatchStatus.UNMATCHED.value,
                    MatchConfidence.NONE.value,
                    _now(),
                ),
            )
            return cursor.lastrowid or 0

    def get_transaction(self, txn_id: int) -> TransactionRecord | None:
        """Get a transaction record by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM bank_transactions WHERE id = ?", (txn_id,)).fetchone()
            return TransactionRecord.from_row(row) if row else None

    def list_transactions(self, statement_id: int) -> list[TransactionRecord]:
        """All records of a statement in stored order."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM bank_transactions WHERE statement_id = ? ORDER BY id ASC",
                (statement_id,),
            ).fetchall()
            return [TransactionRecord.from_row(row) for row in rows]

    def list_unmatched_transactions(self, statement_id: int) -> list[TransactionRecord]:
        """Unmatched records of a statement in stored order."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM bank_transactions
                WHERE statement_id = ? AND match_status = ?
                ORDER BY id ASC
            """,
                (statement_id, MatchStatus.UNMATCHED.value),
            ).fetchall()
            return [TransactionRecord.from_row(row) for row in rows]

    def get_linked_expense_ids(self, statement_id: int) -> set[int]:
        """Expense IDs already linked to any record of the statement."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT matched_expense_id FROM bank_transactions
                WHERE statement_id = ? AND matched_expense_id IS NOT NULL
            """,
                (statement_id,),
            ).fetchall()
            return {row[0] for row in rows}

    def delete_transactions(self, statement_id: int) -> int:
        """Delete every record of a statement. Returns the number deleted."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM bank_transactions WHERE statement_id = ?", (statement_id,)
            )
            return cursor.rowcount

    def match_transaction(
        self, txn_id: int, expense_id: int, confidence: MatchConfidence
    ) -> bool:
        """Link a record to an expense."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE bank_transactions
                SET matched_expense_id = ?, match_status = ?, match_confidence = ?, matched_at = ?
                WHERE id = ?
            """,
                (expense_id, MatchStatus.MATCHED.value, confidence.value, _now(), txn_id),
            )
            return cursor.rowcount > 0

    def ignore_transaction(self, txn_id: int, reason: str) -> bool:
        """Mark a record as ignored; the reason goes to notes."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE bank_transactions
                SET match_status = ?, matched_expense_id = NULL, match_confidence = '',
                    notes = ?, matched_at = ?
                WHERE id = ?
            """,
                (MatchStatus.IGNORED.value, reason, _now(), txn_id),
            )
            return cursor.rowcount > 0

    def mark_transaction_created(self, txn_id: int, expense_id: int) -> bool:
        """Link a record to an expense that was created from it."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE bank_transactions
                SET matched_expense_id = ?, match_status = ?, match_confidence = ?, matched_at = ?
                WHERE id = ?
            """,
                (
                    expense_id,
                    MatchStatus.CREATED.value,
                    MatchConfidence.CREATED.value,
                    _now(),
                    txn_id,
                ),
            )
            return cursor.rowcount > 0

    def unmatch_transaction(self, txn_id: int) -> bool:
        """Clear any link and return the record to unmatched."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE bank_transactions
                SET matched_expense_id = NULL, match_status = ?, match_confidence = '',
                    matched_at = NULL
                WHERE id = ?
            """,
                (MatchStatus.UNMATCHED.value, txn_id),
            )
            return cursor.rowcount > 0

    def update_transaction_type(self, txn_id: int, transaction_type: TransactionType) -> bool:
        """
        Correct a record's type.

        The amount sign is re-derived from the new type and the record goes
        back to unmatched with its link cleared.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT amount FROM bank_transactions WHERE id = ?", (txn_id,)
            ).fetchone()
            if row is None:
                return False

            amount = signed_amount(transaction_type, Decimal(row["amount"]))
            conn.execute(
                """
                UPDATE bank_transactions
                SET transaction_type = ?, amount = ?, match_status = ?,
                    matched_expense_id = NULL, match_confidence = '', matched_at = NULL
                WHERE id = ?
            """,
                (
                    TransactionType(transaction_type).value,
                    str(amount),
                    MatchStatus.UNMATCHED.value,
                    txn_id,
                ),
            )
            return True

    # Job queue methods

    def create_job(
        self,
        job_type: str,
        payload: dict[str, Any],
        max_attempts: int | None = None,
    ) -> int:
        """Insert a pending job. Returns the job ID."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO job_queue (job_type, payload, status, progress, result,
                                       attempts, max_attempts, created_at)
                VALUES (?, ?, ?, 0, '', 0, ?, ?)
            """,
                (
                    job_type,
                    json.dumps(payload),
                    JobState.PENDING.value,
                    max_attempts or self.DEFAULT_MAX_ATTEMPTS,
                    _now(),
                ),
            )
            return cursor.lastrowid or 0

    def get_job(self, job_id: int) -> Job | None:
        """Get a job by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM job_queue WHERE id = ?", (job_id,)).fetchone()
            return Job.from_row(row) if row else None

    def claim_next_job(self) -> Job | None:
        """
        Atomically claim the oldest pending job (lowest id; ids are AUTOINCREMENT).

        Select and update run in one write-locked transaction and the update
        is guarded on status, so two workers can never claim the same job.
        """
        with self._immediate_transaction() as conn:
            row = conn.execute(
                """
                SELECT id FROM job_queue
                WHERE status = ?
                ORDER BY id ASC
                LIMIT 1
            """,
                (JobState.PENDING.value,),
            ).fetchone()
            if row is None:
                return None

            cursor = conn.execute(
                """
                UPDATE job_queue
                SET status = ?, started_at = ?, attempts = attempts + 1
                WHERE id = ? AND status = ?
            """,
                (JobState.RUNNING.value, _now(), row["id"], JobState.PENDING.value),
            )
            if cursor.rowcount == 0:
                return None

            claimed = conn.execute("SELECT * FROM job_queue WHERE id = ?", (row["id"],)).fetchone()
            return Job.from_row(claimed)

    def update_job_progress(self, job_id: int, progress: int) -> bool:
        """Set a job's progress (0-100)."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE job_queue SET progress = ? WHERE id = ?", (progress, job_id)
            )
            return cursor.rowcount > 0

    def complete_job(self, job_id: int, result: str) -> bool:
        """Mark a job completed with its result text."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE job_queue
                SET status = ?, progress = 100, result = ?, completed_at = ?
                WHERE id = ?
            """,
                (JobState.COMPLETED.value, result, _now(), job_id),
            )
            return cursor.rowcount > 0

    def fail_job(self, job_id: int, error: str) -> bool:
        """Mark a job failed; the error text becomes its result."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE job_queue
                SET status = ?, result = ?, completed_at = ?
                WHERE id = ?
            """,
                (JobState.FAILED.value, error, _now(), job_id),
            )
            return cursor.rowcount > 0

    def retry_job(self, job_id: int) -> bool:
        """Return a running job to pending; attempts are kept."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE job_queue
                SET status = ?, started_at = NULL
                WHERE id = ?
            """,
                (JobState.PENDING.value, job_id),
            )
            return cursor.rowcount > 0

    def get_job_counts(self) -> dict[str, int]:
        """Number of jobs per status."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS count FROM job_queue GROUP BY status"
            ).fetchall()
            return {row["status"]: row["count"] for row in rows}

    # Expense methods (local ledger)

    def create_expense(
        self,
        vendor_name: str,
        amount: Decimal,
        date: str,
        date_paid: str | None,
        status: str,
        payment_type: str = "",
        check_number: str = "",
        notes: str = "",
    ) -> int:
        """Insert an expense. Returns the expense ID."""
        now = _now()

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO expenses
                (vendor_name, amount, date, date_paid, status, payment_type,
                 check_number, notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    vendor_name,
                    str(amount),
                    date,
                    date_paid,
                    status,
                    payment_type,
                    check_number,
                    notes,
                    now,
                    now,
                ),
            )
            return cursor.lastrowid or 0

    def get_expense(self, expense_id: int) -> dict[str, Any] | None:
        """Get an expense row as dict."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,)).fetchone()
            return dict(row) if row else None

    def list_paid_expenses(self, start: str, end: str) -> list[dict[str, Any]]:
        """Paid expenses with date_paid in [start, end] (YYYY-MM-DD)."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM expenses
                WHERE status = 'paid' AND date_paid IS NOT NULL
                AND date_paid >= ? AND date_paid <= ?
                ORDER BY date_paid ASC, id ASC
            """,
                (start, end),
            ).fetchall()
            return [dict(row) for row in rows]

    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense. Returns True if a row was removed."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
            return cursor.rowcount > 0
