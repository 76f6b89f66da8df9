"""
Migration 002: Add local expenses table.

Backs the sqlite expense ledger. Amounts are positive Decimals stored as
text; status is paid or not_paid.
"""

import sqlite3

VERSION = 2
NAME = "expenses"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create the expenses table."""
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            vendor_name TEXT NOT NULL,
            amount TEXT NOT NULL,
            date TEXT NOT NULL,
            date_paid TEXT,
            status TEXT NOT NULL DEFAULT 'not_paid',
            payment_type TEXT NOT NULL DEFAULT '',
            check_number TEXT NOT NULL DEFAULT '',
            notes TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    # Matching pool lookup
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_expenses_paid
        ON expenses (status, date_paid)
    """)

    conn.commit()


def downgrade(conn: sqlite3.Connection) -> None:
    """Drop the expenses table."""
    cursor = conn.cursor()
    cursor.execute("DROP INDEX IF EXISTS idx_expenses_paid")
    cursor.execute("DROP TABLE IF EXISTS expenses")
    conn.commit()
