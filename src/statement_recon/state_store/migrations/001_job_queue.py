"""
Migration 001: Add job queue table.

Persisted background jobs (statement parsing). A job is claimed by exactly
one worker, reports progress 0-100 and is retried until max_attempts.

Status: pending, running, completed, failed
"""

import sqlite3

VERSION = 1
NAME = "job_queue"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create the job_queue table."""
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS job_queue (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_type TEXT NOT NULL,
            payload TEXT NOT NULL DEFAULT '{}',  -- JSON, opaque to the queue

            status TEXT NOT NULL DEFAULT 'pending',
            progress INTEGER NOT NULL DEFAULT 0,
            result TEXT NOT NULL DEFAULT '',

            attempts INTEGER NOT NULL DEFAULT 0,
            max_attempts INTEGER NOT NULL DEFAULT 3,

            created_at TEXT NOT NULL,
            started_at TEXT,
            completed_at TEXT
        )
    """)

    # Claim order: oldest pending first
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_job_queue_pending
        ON job_queue (status, created_at)
    """)

    conn.commit()


def downgrade(conn: sqlite3.Connection) -> None:
    """Drop the job_queue table."""
    cursor = conn.cursor()
    cursor.execute("DROP INDEX IF EXISTS idx_job_queue_pending")
    cursor.execute("DROP TABLE IF EXISTS job_queue")
    conn.commit()
