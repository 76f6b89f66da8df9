"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..extractors import PlainTextExtractor, get_extractor_for
from ..filestore import FileStore, FileStoreError
from ..jobs import (
    PARSE_STATEMENT_JOB,
    JobNotFoundError,
    JobQueue,
    ParseStatementHandler,
    Worker,
)
from ..ledger import ExpenseLedger, LedgerError, create_ledger
from ..parsers import StatementParseError, StatementParser
from ..schemas.statement import MatchStatus, TransactionType
from ..services import ReconciliationError, ReconciliationService
from ..state_store import StateStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@dataclass
class Components:
    """Wired application objects for one CLI invocation."""

    store: StateStore
    queue: JobQueue
    ledger: ExpenseLedger
    filestore: FileStore
    service: ReconciliationService


def build_components(config: Config) -> Components:
    store = StateStore(config.state_db_path)
    queue = JobQueue(store, default_max_attempts=config.worker.max_attempts)
    ledger = create_ledger(config, store)
    filestore = FileStore(config.storage.file_store_path)
    service = ReconciliationService(store, queue, ledger, filestore, config)
    return Components(store, queue, ledger, filestore, service)


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="statement-recon",
        description="Parse monthly bank statements and reconcile them against paid expenses",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    # upload command
    upload_parser = subparsers.add_parser("upload", help="Upload a statement and queue parsing")
    upload_parser.add_argument("month", type=str, help="Statement month (YYYY-MM)")
    upload_parser.add_argument("file", type=Path, help="Statement PDF (or .txt layout text)")
    upload_parser.add_argument("--notes", type=str, default="", help="Free-form notes")

    # reparse command
    reparse_parser = subparsers.add_parser("reparse", help="Queue a fresh parse of a statement")
    reparse_parser.add_argument("statement_id", type=int)

    # worker command
    worker_parser = subparsers.add_parser("worker", help="Process queued jobs")
    worker_parser.add_argument(
        "--once",
        action="store_true",
        help="Process at most one job and exit",
    )

    # job-status command
    job_parser = subparsers.add_parser("job-status", help="Show a job's status and progress")
    job_parser.add_argument("job_id", type=int)
    job_parser.add_argument("--json", action="store_true", help="Print as JSON")

    # parse command (dry run)
    parse_parser = subparsers.add_parser(
        "parse", help="Parse a statement file and print a report (nothing is stored)"
    )
    parse_parser.add_argument("file", type=Path)
    parse_parser.add_argument(
        "--text",
        action="store_true",
        help="Treat the file as already extracted layout text",
    )
    parse_parser.add_argument(
        "--month",
        type=str,
        default=None,
        help="Fallback statement month (YYYY-MM) if the header has none",
    )
    parse_parser.add_argument(
        "--show-transactions",
        action="store_true",
        help="List every parsed transaction",
    )

    # statements command
    subparsers.add_parser("statements", help="List uploaded statements")

    # transactions command
    txn_parser = subparsers.add_parser("transactions", help="List a statement's transactions")
    txn_parser.add_argument("statement_id", type=int)
    txn_parser.add_argument(
        "--status",
        type=str,
        choices=[s.value for s in MatchStatus],
        default=None,
        help="Only show transactions with this match status",
    )

    # review commands
    start_parser = subparsers.add_parser("start-review", help="Mark a statement as in review")
    start_parser.add_argument("statement_id", type=int)

    match_parser = subparsers.add_parser("match", help="Link a transaction to an expense")
    match_parser.add_argument("transaction_id", type=int)
    match_parser.add_argument("expense_id", type=int)

    unmatch_parser = subparsers.add_parser("unmatch", help="Clear a transaction's link")
    unmatch_parser.add_argument("transaction_id", type=int)

    ignore_parser = subparsers.add_parser("ignore", help="Ignore a transaction")
    ignore_parser.add_argument("transaction_id", type=int)
    ignore_parser.add_argument("--reason", type=str, default="", help="Why it is ignored")

    create_parser = subparsers.add_parser(
        "create-expense", help="Create a paid expense from a transaction"
    )
    create_parser.add_argument("transaction_id", type=int)
    create_parser.add_argument(
        "--vendor",
        type=str,
        default="",
        help="Vendor name (default: the transaction's vendor hint)",
    )

    type_parser = subparsers.add_parser("set-type", help="Correct a transaction's type")
    type_parser.add_argument("transaction_id", type=int)
    type_parser.add_argument("type", type=str, choices=[t.value for t in TransactionType])

    complete_parser = subparsers.add_parser("complete", help="Mark a statement reconciled")
    complete_parser.add_argument("statement_id", type=int)

    stats_parser = subparsers.add_parser("stats", help="Show reconciliation statistics")
    stats_parser.add_argument("statement_id", type=int)

    return parser


def cmd_init_config(config_path: Path, force: bool) -> int:
    """Write a default config file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return 1

    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def cmd_upload(components: Components, month: str, file: Path, notes: str) -> int:
    """Upload a statement."""
    if not file.is_file():
        print(f"❌ File not found: {file}")
        return 1

    statement_id, job_id = components.service.upload_statement(month, file, notes=notes)
    print(f"📄 Uploaded statement #{statement_id} for {month}")
    print(f"⏳ Parse job #{job_id} queued (run `statement-recon worker` to process)")
    return 0


def cmd_reparse(components: Components, statement_id: int) -> int:
    job_id = components.service.reparse(statement_id)
    print(f"⏳ Parse job #{job_id} queued for statement #{statement_id}")
    return 0


def cmd_worker(config: Config, components: Components, once: bool) -> int:
    """Run the job worker."""
    worker = Worker(
        components.queue,
        poll_interval=config.worker.poll_interval_seconds,
        job_timeout=config.worker.job_timeout_seconds,
        abandon_on_stop=config.worker.abandon_on_stop,
    )
    worker.register(
        PARSE_STATEMENT_JOB,
        ParseStatementHandler(
            components.store, components.filestore, components.ledger, config
        ),
    )

    if once:
        if worker.run_once():
            print("✓ Processed 1 job")
        else:
            print("No pending jobs")
        return 0

    print("🔄 Worker running (Ctrl+C to stop)")
    worker.run_forever()
    print("✓ Worker stopped")
    return 0


def cmd_job_status(components: Components, job_id: int, as_json: bool) -> int:
    status = components.service.job_status(job_id)

    if as_json:
        print(json.dumps(status.to_dict(), indent=2))
        return 0

    print(f"Job #{status.id}: {status.status.value} ({status.progress}%)")
    if status.result:
        print(f"  Result: {status.result}")
    return 0


def cmd_parse(
    file: Path,
    as_text: bool,
    month: str | None,
    show_transactions: bool,
    config: Config,
) -> int:
    """Parse a statement without storing anything."""
    if as_text:
        extractor = PlainTextExtractor()
    else:
        extractor = get_extractor_for(file, config.parser.pdftotext_path)

    parsed = StatementParser().parse(
        file,
        extractor,
        timeout=config.worker.job_timeout_seconds,
        fallback_month=month,
    )

    print(f"\n📄 Statement {parsed.statement_month}")
    print("=" * 50)
    print(f"  Account:              ****{parsed.account_last_four or '????'}")
    print(f"  Beginning balance:    {parsed.beginning_balance}")
    print(f"  Ending balance:       {parsed.ending_balance}")
    print(f"  Transactions:         {len(parsed.transactions)}")
    for section, count in parsed.diagnostics.section_records.items():
        skipped = parsed.diagnostics.skipped_lines.get(section, 0)
        suffix = f" ({skipped} lines skipped)" if skipped else ""
        print(f"    {section:<20}{count}{suffix}")

    if show_transactions:
        print()
        for txn in parsed.transactions:
            hint = f" [{txn.vendor_hint}]" if txn.vendor_hint else ""
            print(
                f"  {txn.posting_date}  {txn.transaction_type.value:<10} "
                f"{txn.amount:>12}  {txn.description[:60]}{hint}"
            )

    report = parsed.verification
    if report is not None:
        print("\n🔎 Verification")
        for check in report.subtotals:
            mark = "✓" if check.ok else "⚠️ "
            print(
                f"  {mark} {check.bucket:<10} declared {check.declared:>12}  "
                f"parsed {check.computed:>12}"
            )
        mark = "✓" if report.balance_delta == 0 else "⚠️ "
        print(
            f"  {mark} balance    ending {report.ending_balance:>12}  "
            f"computed {report.computed_ending_balance:>12}"
        )
    print()
    return 0


def cmd_statements(components: Components) -> int:
    statements = components.store.list_statements()
    if not statements:
        print("No statements uploaded")
        return 0

    for stmt in statements:
        print(
            f"  #{stmt.id:<4} {stmt.statement_month}  {stmt.status.value:<12} "
            f"{stmt.beginning_balance:>12} → {stmt.ending_balance:>12}"
        )
    return 0


def cmd_transactions(components: Components, statement_id: int, status: str | None) -> int:
    transactions = components.service.list_transactions(statement_id)
    if status:
        transactions = [t for t in transactions if t.match_status.value == status]

    for txn in transactions:
        link = f" → expense #{txn.matched_expense_id}" if txn.matched_expense_id else ""
        print(
            f"  #{txn.id:<5} {txn.posting_date}  {txn.transaction_type.value:<10} "
            f"{txn.amount:>12}  {txn.match_status.value:<9}{link}  {txn.description[:50]}"
        )
    print(f"\n{len(transactions)} transaction(s)")
    return 0


def cmd_stats(components: Components, statement_id: int) -> int:
    statement = components.service.get_statement(statement_id)
    stats = components.service.get_stats(statement_id)

    print(f"\n📊 Statement {statement.statement_month} ({statement.status.value})")
    print("=" * 50)
    print(f"  Transactions:         {stats.total_transactions}")
    print(f"  Matched:              {stats.matched_count}")
    print(f"  Created:              {stats.created_count}")
    print(f"  Ignored:              {stats.ignored_count}")
    print(f"  Unmatched:            {stats.unmatched_count}")
    print(f"  Total credits:        {stats.total_credits}")
    print(f"  Total debits:         {stats.total_debits}")
    print()
    print(f"  {'':<22}{'declared':>12}{'parsed':>12}")
    for label, declared, computed in [
        ("Electronic deposits", statement.electronic_deposits, stats.electronic_deposits),
        ("Electronic payments", statement.electronic_payments, stats.electronic_payments),
        ("Checks paid", statement.checks_paid, stats.checks_paid),
        ("Service fees", statement.service_fees, stats.service_fees),
    ]:
        print(f"  {label:<22}{declared:>12}{computed:>12}")
    print()
    return 0


def run_command(parsed: argparse.Namespace, config: Config) -> int:
    """Dispatch a command that needs the application components."""
    if parsed.command == "parse":
        return cmd_parse(parsed.file, parsed.text, parsed.month, parsed.show_transactions, config)

    components = build_components(config)
    service = components.service

    if parsed.command == "upload":
        return cmd_upload(components, parsed.month, parsed.file, parsed.notes)
    elif parsed.command == "reparse":
        return cmd_reparse(components, parsed.statement_id)
    elif parsed.command == "worker":
        return cmd_worker(config, components, parsed.once)
    elif parsed.command == "job-status":
        return cmd_job_status(components, parsed.job_id, parsed.json)
    elif parsed.command == "statements":
        return cmd_statements(components)
    elif parsed.command == "transactions":
        return cmd_transactions(components, parsed.statement_id, parsed.status)
    elif parsed.command == "start-review":
        service.start_review(parsed.statement_id)
        print(f"✓ Statement #{parsed.statement_id} in review")
    elif parsed.command == "match":
        service.match_manual(parsed.transaction_id, parsed.expense_id)
        print(f"✓ Transaction #{parsed.transaction_id} matched to expense #{parsed.expense_id}")
    elif parsed.command == "unmatch":
        service.unmatch(parsed.transaction_id)
        print(f"✓ Transaction #{parsed.transaction_id} unmatched")
    elif parsed.command == "ignore":
        service.ignore(parsed.transaction_id, parsed.reason)
        print(f"✓ Transaction #{parsed.transaction_id} ignored")
    elif parsed.command == "create-expense":
        expense_id = service.create_expense_from_transaction(parsed.transaction_id, parsed.vendor)
        print(f"✓ Created expense #{expense_id} from transaction #{parsed.transaction_id}")
    elif parsed.command == "set-type":
        service.update_type(parsed.transaction_id, parsed.type)
        print(f"✓ Transaction #{parsed.transaction_id} is now {parsed.type} (unmatched)")
    elif parsed.command == "complete":
        service.complete(parsed.statement_id)
        print(f"✓ Statement #{parsed.statement_id} completed")
    elif parsed.command == "stats":
        return cmd_stats(components, parsed.statement_id)
    else:
        return 1

    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config)
        errors = config.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    try:
        return run_command(parsed, config)
    except (
        ReconciliationError,
        JobNotFoundError,
        StatementParseError,
        LedgerError,
        FileStoreError,
        ValueError,
    ) as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
