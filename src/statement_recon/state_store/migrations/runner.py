"""
Migration runner for versioned database schema changes.

Migrations live next to this module as {version}_{name}.py, e.g.
001_job_queue.py. Each one defines:
- VERSION: int
- NAME: str
- upgrade(conn: Connection) -> None
- downgrade(conn: Connection) -> None  (optional)
"""

import importlib
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Migration:
    """A single schema migration."""

    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]
    downgrade: Callable[[sqlite3.Connection], None] | None


def get_all_migrations() -> list[Migration]:
    """Load the migrations of this package, sorted by version."""
    migrations = []

    for py_file in sorted(Path(__file__).parent.glob("[0-9][0-9][0-9]_*.py")):
        module = importlib.import_module(f"{__package__}.{py_file.stem}")
        migrations.append(
            Migration(
                version=module.VERSION,
                name=module.NAME,
                upgrade=module.upgrade,
                downgrade=getattr(module, "downgrade", None),
            )
        )

    return sorted(migrations, key=lambda m: m.version)


class MigrationRunner:
    """
    Applies migrations in version order.

    Applied versions are tracked in a `migrations` table.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        cursor = self.conn.execute("SELECT version FROM migrations")
        return {row[0] for row in cursor.fetchall()}

    def get_current_version(self) -> int:
        cursor = self.conn.execute("SELECT MAX(version) FROM migrations")
        result = cursor.fetchone()[0]
        return result if result is not None else 0

    def apply_migration(self, migration: Migration) -> None:
        """Run one upgrade and record it."""
        logger.info(f"Applying migration {migration.version:03d}_{migration.name}")

        try:
            migration.upgrade(self.conn)
            applied_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            self.conn.execute(
                "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.name, applied_at),
            )
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            logger.error(f"Migration {migration.version:03d} failed: {e}")
            raise

    def rollback_migration(self, migration: Migration) -> None:
        """Run one downgrade and forget it."""
        if migration.downgrade is None:
            raise NotImplementedError(
                f"Migration {migration.version:03d}_{migration.name} cannot be rolled back"
            )

        logger.info(f"Rolling back migration {migration.version:03d}_{migration.name}")

        try:
            migration.downgrade(self.conn)
            self.conn.execute("DELETE FROM migrations WHERE version = ?", (migration.version,))
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            logger.error(f"Rollback of migration {migration.version:03d} failed: {e}")
            raise

    def run_pending(self) -> list[int]:
        """Apply every migration not yet recorded. Returns the applied versions."""
        applied = self.get_applied_versions()
        newly_applied = []

        for migration in get_all_migrations():
            if migration.version in applied:
                continue
            self.apply_migration(migration)
            newly_applied.append(migration.version)

        if newly_applied:
            logger.info(f"Applied migrations: {newly_applied}")
        else:
            logger.debug("Schema up to date")

        return newly_applied

    def migrate_to(self, target_version: int) -> None:
        """Upgrade or downgrade to the given schema version."""
        current = self.get_current_version()
        by_version = {m.version: m for m in get_all_migrations()}

        if target_version > current:
            for version in range(current + 1, target_version + 1):
                if version in by_version:
                    self.apply_migration(by_version[version])
        else:
            for version in range(current, target_version, -1):
                if version in by_version:
                    self.rollback_migration(by_version[version])
