"""Tests for state store."""

import re
import sqlite3
from decimal import Decimal

import pytest

from statement_recon.schemas import (
    MatchConfidence,
    MatchStatus,
    ParsedStatement,
    ParsedTransaction,
    StatementStatus,
    TransactionType,
)
from statement_recon.state_store import JobState, StateStore
from statement_recon.state_store.migrations import MigrationRunner, get_all_migrations


def make_txn(**overrides) -> ParsedTransaction:
    values = {
        "posting_date": "2025-12-02",
        "description": "DEBIT POS JETRO CASH CARRY",
        "amount": Decimal("-1525.50"),
        "transaction_type": TransactionType.DEBIT,
        "category": "expense",
        "vendor_hint": "Jetro",
    }
    values.update(overrides)
    return ParsedTransaction(**values)


@pytest.fixture
def statement_id(store) -> int:
    return store.create_statement("2025-12", "2025-12-31", "abc.pdf")


class TestStateStore:
    """Tests for SQLite state store."""

    def test_init_creates_db(self, temp_db):
        """Initializing creates database file."""
        StateStore(temp_db)
        assert temp_db.exists()

    def test_init_creates_tables(self, store):
        """All required tables are created."""
        conn = store._get_connection()
        try:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            table_names = [t[0] for t in tables]

            assert "statement_documents" in table_names
            assert "bank_transactions" in table_names
            assert "job_queue" in table_names
            assert "expenses" in table_names
            assert "migrations" in table_names
        finally:
            conn.close()

    def test_reopen_is_idempotent(self, temp_db):
        first = StateStore(temp_db)
        first.create_statement("2025-12", "2025-12-31", "a.pdf")

        second = StateStore(temp_db)
        assert second.get_statement_by_month("2025-12") is not None

    def test_without_migrations(self, temp_db):
        store = StateStore(temp_db, run_migrations=False)
        conn = store._get_connection()
        try:
            tables = {t[0] for t in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
            assert "statement_documents" in tables
            assert "job_queue" not in tables
        finally:
            conn.close()


class TestMigrations:
    def test_all_migrations_recorded(self, store):
        conn = store._get_connection()
        try:
            runner = MigrationRunner(conn)
            assert runner.get_applied_versions() == {m.version for m in get_all_migrations()}
            assert runner.run_pending() == []
        finally:
            conn.close()

    def test_migrate_down_and_up(self, store):
        conn = store._get_connection()
        try:
            runner = MigrationRunner(conn)
            runner.migrate_to(1)
            tables = {t[0] for t in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
            assert "expenses" not in tables
            assert "job_queue" in tables

            runner.migrate_to(2)
            assert runner.get_current_version() == 2
        finally:
            conn.close()


class TestStatementOperations:
    def test_create_and_get(self, store, statement_id):
        stmt = store.get_statement(statement_id)

        assert stmt is not None
        assert stmt.statement_month == "2025-12"
        assert stmt.statement_date == "2025-12-31"
        assert stmt.status == StatementStatus.PENDING
        assert stmt.beginning_balance == Decimal("0.00")
        assert stmt.parse_job_id is None

    def test_one_statement_per_month(self, store, statement_id):
        with pytest.raises(sqlite3.IntegrityError):
            store.create_statement("2025-12", "2025-12-31", "other.pdf")

    def test_missing_statement(self, store):
        assert store.get_statement(999) is None
        assert store.get_statement_by_month("1999-01") is None
        assert store.update_statement_status(999, StatementStatus.PARSED) is False

    def test_list_newest_first(self, store):
        store.create_statement("2025-10", "2025-10-31", "a.pdf")
        store.create_statement("2025-12", "2025-12-31", "b.pdf")
        store.create_statement("2025-11", "2025-11-30", "c.pdf")

        assert [s.statement_month for s in store.list_statements()] == [
            "2025-12",
            "2025-11",
            "2025-10",
        ]

    def test_status_stamps(self, store, statement_id):
        store.update_statement_status(statement_id, StatementStatus.PARSED)
        stmt = store.get_statement(statement_id)
        assert stmt.parsed_at is not None
        assert stmt.reconciled_at is None

        store.update_statement_status(statement_id, StatementStatus.COMPLETED)
        stmt = store.get_statement(statement_id)
        assert stmt.status == StatementStatus.COMPLETED
        assert stmt.reconciled_at is not None

    def test_parse_job_sets_parsing(self, store, statement_id):
        assert store.set_statement_parse_job(statement_id, 42)

        stmt = store.get_statement(statement_id)
        assert stmt.parse_job_id == 42
        assert stmt.status == StatementStatus.PARSING

    def test_save_header(self, store, statement_id):
        parsed = ParsedStatement(
            account_last_four="2609",
            statement_month="2025-12",
            beginning_balance=Decimal("12000.00"),
            ending_balance=Decimal("-12.00"),
            checks_paid=Decimal("2114.50"),
        )
        store.save_statement_header(statement_id, parsed)

        stmt = store.get_statement(statement_id)
        assert stmt.account_last_four == "2609"
        assert stmt.beginning_balance == Decimal("12000.00")
        assert stmt.ending_balance == Decimal("-12.00")
        assert stmt.checks_paid == Decimal("2114.50")


class TestTransactionOperations:
    def test_create_and_get(self, store, statement_id):
        txn_id = store.create_transaction(statement_id, make_txn())
        txn = store.get_transaction(txn_id)

        assert txn.statement_id == statement_id
        assert txn.amount == Decimal("-1525.50")
        assert txn.transaction_type == TransactionType.DEBIT
        assert txn.match_status == MatchStatus.UNMATCHED
        assert txn.match_confidence == MatchConfidence.NONE
        assert txn.matched_expense_id is None

    def test_list_keeps_insert_order(self, store, statement_id):
        ids = [
            store.create_transaction(statement_id, make_txn(description=f"row {i}"))
            for i in range(3)
        ]

        assert [t.id for t in store.list_transactions(statement_id)] == ids

    def test_match_and_unmatch(self, store, statement_id):
        txn_id = store.create_transaction(statement_id, make_txn())

        assert store.match_transaction(txn_id, 7, MatchConfidence.AUTO_EXACT)
        txn = store.get_transaction(txn_id)
        assert txn.match_status == MatchStatus.MATCHED
        assert txn.matched_expense_id == 7
        assert txn.matched_at is not None
        assert store.get_linked_expense_ids(statement_id) == {7}
        assert store.list_unmatched_transactions(statement_id) == []

        assert store.unmatch_transaction(txn_id)
        txn = store.get_transaction(txn_id)
        assert txn.match_status == MatchStatus.UNMATCHED
        assert txn.matched_expense_id is None
        assert txn.match_confidence == MatchConfidence.NONE
        assert store.get_linked_expense_ids(statement_id) == set()

    def test_ignore_clears_link(self, store, statement_id):
        txn_id = store.create_transaction(statement_id, make_txn())
        store.match_transaction(txn_id, 7, MatchConfidence.MANUAL)

        store.ignore_transaction(txn_id, "owner draw")

        txn = store.get_transaction(txn_id)
        assert txn.match_status == MatchStatus.IGNORED
        assert txn.matched_expense_id is None
        assert txn.notes == "owner draw"

    def test_mark_created(self, store, statement_id):
        txn_id = store.create_transaction(statement_id, make_txn())
        store.mark_transaction_created(txn_id, 11)

        txn = store.get_transaction(txn_id)
        assert txn.match_status == MatchStatus.CREATED
        assert txn.match_confidence == MatchConfidence.CREATED
        assert txn.matched_expense_id == 11

    def test_update_type_resigns_and_unmatches(self, store, statement_id):
        txn_id = store.create_transaction(statement_id, make_txn())
        store.match_transaction(txn_id, 7, MatchConfidence.MANUAL)

        assert store.update_transaction_type(txn_id, TransactionType.DEPOSIT)

        txn = store.get_transaction(txn_id)
        assert txn.transaction_type == TransactionType.DEPOSIT
        assert txn.amount == Decimal("1525.50")
        assert txn.match_status == MatchStatus.UNMATCHED
        assert txn.matched_expense_id is None

        store.update_transaction_type(txn_id, TransactionType.FEE)
        assert store.get_transaction(txn_id).amount == Decimal("-1525.50")

    def test_update_type_missing(self, store):
        assert store.update_transaction_type(999, TransactionType.FEE) is False

    def test_delete_transactions(self, store, statement_id):
        store.create_transaction(statement_id, make_txn())
        store.create_transaction(statement_id, make_txn())

        assert store.delete_transactions(statement_id) == 2
        assert store.list_transactions(statement_id) == []

    def test_unknown_statement_rejected(self, store):
        with pytest.raises(sqlite3.IntegrityError):
            store.create_transaction(999, make_txn())


class TestJobOperations:
    def test_create_job(self, store):
        job_id = store.create_job("parse_statement", {"statement_id": 1})
        job = store.get_job(job_id)

        assert job.status == JobState.PENDING
        assert job.payload == {"statement_id": 1}
        assert job.attempts == 0
        assert job.max_attempts == StateStore.DEFAULT_MAX_ATTEMPTS

    def test_claim_increments_attempts(self, store):
        job_id = store.create_job("parse_statement", {})

        job = store.claim_next_job()
        assert job.id == job_id
        assert job.status == JobState.RUNNING
        assert job.attempts == 1
        assert job.started_at is not None
        assert store.claim_next_job() is None

    def test_timestamps_keep_microseconds(self, store):
        job_id = store.create_job("a", {})

        assert re.search(r"T\d{2}:\d{2}:\d{2}\.\d{6}Z$", store.get_job(job_id).created_at)

    def test_claim_order_follows_insertion(self, store):
        older = store.create_job("a", {})
        newer = store.create_job("b", {})
        # Text order of these timestamps is the reverse of their age
        with store._transaction() as conn:
            conn.execute(
                "UPDATE job_queue SET created_at = ? WHERE id = ?", ("2025-01-01T12:00:00Z", older)
            )
            conn.execute(
                "UPDATE job_queue SET created_at = ? WHERE id = ?",
                ("2025-01-01T12:00:00.300000Z", newer),
            )

        assert store.claim_next_job().id == older
        assert store.claim_next_job().id == newer

    def test_complete_and_counts(self, store):
        first = store.create_job("a", {})
        store.create_job("b", {})
        store.claim_next_job()
        store.complete_job(first, "done")

        job = store.get_job(first)
        assert job.status == JobState.COMPLETED
        assert job.progress == 100
        assert job.result == "done"
        assert store.get_job_counts() == {"completed": 1, "pending": 1}


class TestExpenseOperations:
    def test_list_paid_in_window(self, store):
        store.create_expense("Jetro", Decimal("1525.50"), "2025-12-01", "2025-12-02", "paid")
        store.create_expense("Con Ed", Decimal("75.00"), "2025-12-01", None, "not_paid")
        store.create_expense("Old", Decimal("5.00"), "2025-10-01", "2025-10-01", "paid")

        expenses = store.list_paid_expenses("2025-11-01", "2025-12-31")

        assert [e["vendor_name"] for e in expenses] == ["Jetro"]
        assert Decimal(expenses[0]["amount"]) == Decimal("1525.50")

    def test_delete_expense(self, store):
        expense_id = store.create_expense("X", Decimal("1.00"), "2025-12-01", "2025-12-01", "paid")

        assert store.delete_expense(expense_id)
        assert store.get_expense(expense_id) is None
        assert store.delete_expense(expense_id) is False
