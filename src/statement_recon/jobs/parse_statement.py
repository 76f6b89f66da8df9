"""
parse_statement job handler.

Payload: {"statement_id": int, "file_path": str (file store identifier)}

Progress: 5 parsing started, 40 text parsed, 50 header saved,
50-90 records inserted, 95 auto-matched, 100 done.
"""

import logging
from typing import Any

from ..config import Config
from ..extractors import get_extractor_for
from ..filestore import FileStore
from ..ledger import ExpenseLedger, LedgerError
from ..matching import AutoMatcher
from ..parsers import StatementParseError, StatementParser
from ..schemas.statement import StatementStatus
from ..state_store import StateStore
from .worker import JobContext

logger = logging.getLogger(__name__)

JOB_TYPE = "parse_statement"


class ParseStatementHandler:
    """Parse an uploaded statement, replace its records and auto-match them."""

    def __init__(
        self,
        store: StateStore,
        filestore: FileStore,
        ledger: ExpenseLedger,
        config: Config,
        parser: StatementParser | None = None,
    ):
        self.store = store
        self.filestore = filestore
        self.ledger = ledger
        self.config = config
        self.parser = parser or StatementParser()

    def __call__(self, ctx: JobContext) -> dict[str, Any]:
        try:
            statement_id = int(ctx.job.payload["statement_id"])
            file_path = str(ctx.job.payload["file_path"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid parse_statement payload: {ctx.job.payload!r}") from e

        statement = self.store.get_statement(statement_id)
        if statement is None:
            raise ValueError(f"Statement {statement_id} not found")

        self.store.update_statement_status(statement_id, StatementStatus.PARSING)
        ctx.report_progress(5)

        path = self.filestore.resolve(file_path)
        extractor = get_extractor_for(path, self.config.parser.pdftotext_path)

        try:
            parsed = self.parser.parse(
                path,
                extractor,
                timeout=ctx.remaining(),
                fallback_month=statement.statement_month,
            )
        except StatementParseError:
            self.store.update_statement_status(statement_id, StatementStatus.PENDING)
            raise
        ctx.report_progress(40)

        if parsed.statement_month != statement.statement_month:
            logger.warning(
                f"Statement {statement_id} uploaded as {statement.statement_month} "
                f"but the document covers {parsed.statement_month}"
            )

        self.store.save_statement_header(statement_id, parsed)
        ctx.report_progress(50)

        self.store.delete_transactions(statement_id)

        total = len(parsed.transactions)
        for i, txn in enumerate(parsed.transactions):
            ctx.raise_if_cancelled()
            self.store.create_transaction(statement_id, txn)
            ctx.report_progress(50 + 40 * (i + 1) // total)

        ctx.report_progress(95)

        matched_count = 0
        try:
            run = AutoMatcher(self.store, self.ledger, self.config.matching).match_statement(
                statement_id
            )
            matched_count = run.matched_count
        except LedgerError as e:
            logger.warning(f"Auto-match skipped for statement {statement_id}: {e}")

        self.store.update_statement_status(statement_id, StatementStatus.PARSED)
        ctx.report_progress(100)

        logger.info(
            f"Parsed statement {statement_id} ({parsed.statement_month}): "
            f"{total} transactions, {matched_count} auto-matched"
        )

        return {
            "transactions_count": total,
            "matched_count": matched_count,
            "beginning_balance": str(parsed.beginning_balance),
            "ending_balance": str(parsed.ending_balance),
            "account_last_four": parsed.account_last_four,
            "verification": parsed.verification.to_dict() if parsed.verification else None,
        }
