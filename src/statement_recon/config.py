"""
Configuration management (SSOT).

This module defines ALL configuration for the statement reconciliation
application. All config keys are defined here; no other module should invent
config keys.

Key invariants:
- The state database and the file store live on local disk
- The job deadline is the only timeout applied to text extraction
- Matching never applies an amount tolerance (only date and vendor hints are fuzzy)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class StorageConfig:
    """Local persistence settings."""

    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))
    # Base directory for uploaded statement files
    file_store_path: Path = field(default_factory=lambda: Path("data/statements"))


@dataclass
class ParserConfig:
    """Statement parser settings."""

    # pdftotext binary (poppler-utils)
    pdftotext_path: str = "pdftotext"


@dataclass
class WorkerConfig:
    """Background job worker settings."""

    # Sleep between claims when the queue is empty (seconds)
    poll_interval_seconds: float = 2.0
    # Hard deadline for a single job run (seconds)
    job_timeout_seconds: int = 300
    # Claims per job before it is marked failed
    max_attempts: int = 3
    # On shutdown, cancel the in-flight job instead of letting it finish
    abandon_on_stop: bool = False


@dataclass
class MatchingConfig:
    """Auto-matcher settings."""

    # Days added on each side of the statement month when loading expenses
    pool_buffer_days: int = 7
    # Max distance between posting date and date paid for the amount+date rule
    date_tolerance_days: int = 3


@dataclass
class LedgerConfig:
    """Expense ledger settings.

    backend:
    - sqlite: expenses table inside the state database
    - http: external ledger service reached over its JSON API
    """

    backend: str = "sqlite"
    base_url: str | None = None
    token: str = ""
    timeout_seconds: int = 30
    max_retries: int = 3


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)

    @property
    def state_db_path(self) -> Path:
        """Shortcut for the state database location."""
        return self.storage.state_db_path

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.ledger.backend not in ("sqlite", "http"):
            errors.append(f"ledger.backend must be 'sqlite' or 'http', got {self.ledger.backend!r}")
        if self.ledger.backend == "http" and not self.ledger.base_url:
            errors.append("ledger.base_url is required when ledger.backend is 'http'")

        if self.worker.poll_interval_seconds <= 0:
            errors.append("worker.poll_interval_seconds must be > 0")
        if self.worker.job_timeout_seconds <= 0:
            errors.append("worker.job_timeout_seconds must be > 0")
        if self.worker.max_attempts < 1:
            errors.append("worker.max_attempts must be >= 1")

        if self.matching.pool_buffer_days < 0:
            errors.append("matching.pool_buffer_days must be >= 0")
        if self.matching.date_tolerance_days < 0:
            errors.append("matching.date_tolerance_days must be >= 0")

        return errors


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - STATEMENT_RECON_DB (state database path)
    - STATEMENT_RECON_FILES (file store directory)
    - PDFTOTEXT_PATH
    - LEDGER_BACKEND (sqlite/http)
    - LEDGER_URL
    - LEDGER_TOKEN
    - JOB_TIMEOUT_SECONDS
    - JOB_POLL_INTERVAL
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Storage
    storage_data = data.get("storage", {})
    storage = StorageConfig(
        state_db_path=Path(
            os.environ.get(
                "STATEMENT_RECON_DB", storage_data.get("state_db_path", "data/state.db")
            )
        ),
        file_store_path=Path(
            os.environ.get(
                "STATEMENT_RECON_FILES", storage_data.get("file_store_path", "data/statements")
            )
        ),
    )

    # Parser
    parser_data = data.get("parser", {})
    parser = ParserConfig(
        pdftotext_path=os.environ.get(
            "PDFTOTEXT_PATH", parser_data.get("pdftotext_path", "pdftotext")
        ),
    )

    # Worker
    worker_data = data.get("worker", {})
    worker = WorkerConfig(
        poll_interval_seconds=float(
            os.environ.get("JOB_POLL_INTERVAL", worker_data.get("poll_interval_seconds", 2.0))
        ),
        job_timeout_seconds=int(
            os.environ.get("JOB_TIMEOUT_SECONDS", worker_data.get("job_timeout_seconds", 300))
        ),
        max_attempts=worker_data.get("max_attempts", 3),
        abandon_on_stop=worker_data.get("abandon_on_stop", False),
    )

    # Matching
    matching_data = data.get("matching", {})
    matching = MatchingConfig(
        pool_buffer_days=matching_data.get("pool_buffer_days", 7),
        date_tolerance_days=matching_data.get("date_tolerance_days", 3),
    )

    # Ledger
    ledger_data = data.get("ledger", {})
    ledger = LedgerConfig(
        backend=os.environ.get("LEDGER_BACKEND", ledger_data.get("backend", "sqlite")),
        base_url=os.environ.get("LEDGER_URL", ledger_data.get("base_url")),
        token=os.environ.get("LEDGER_TOKEN", ledger_data.get("token", "")),
        timeout_seconds=ledger_data.get("timeout_seconds", 30),
        max_retries=ledger_data.get("max_retries", 3),
    )

    return Config(
        storage=storage,
        parser=parser,
        worker=worker,
        matching=matching,
        ledger=ledger,
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Statement reconciliation configuration

storage:
  state_db_path: "data/state.db"          # SQLite state database
  file_store_path: "data/statements"      # Uploaded statement files

parser:
  pdftotext_path: "pdftotext"             # poppler-utils binary

worker:
  poll_interval_seconds: 2.0              # Sleep when the queue is empty
  job_timeout_seconds: 300                # Deadline per job run
  max_attempts: 3                         # Claims before a job is failed
  abandon_on_stop: false                  # Cancel in-flight job on shutdown

matching:
  pool_buffer_days: 7                     # Expense window around the statement month
  date_tolerance_days: 3                  # Amount + date rule window

ledger:
  backend: "sqlite"                       # sqlite | http
  base_url: null                          # Required for http backend
  token: ""
  timeout_seconds: 30
  max_retries: 3
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
