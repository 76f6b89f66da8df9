"""Auto-matcher linking statement debits to paid ledger expenses.

Rules, strongest first:
1. Check number equality -> auto_exact
2. Exact amount and posting date within the date tolerance of date paid -> auto_fuzzy
3. Exact amount and vendor hint contained in the vendor name -> auto_fuzzy

Amounts are compared as exact Decimals; there is no amount tolerance. An
expense is linked to at most one record of a statement.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING

from ..schemas.statement import MatchConfidence, TransactionType

if TYPE_CHECKING:
    from ..config import MatchingConfig
    from ..ledger import Expense, ExpenseLedger
    from ..state_store import StateStore, TransactionRecord

logger = logging.getLogger(__name__)


class MatchRule:
    CHECK_NUMBER = "check_number"
    AMOUNT_DATE = "amount_date"
    AMOUNT_VENDOR = "amount_vendor"


@dataclass
class MatchDecision:
    """One record linked to one expense by the auto-matcher."""

    transaction_id: int
    expense_id: int
    confidence: MatchConfidence
    rule: str

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "expense_id": self.expense_id,
            "confidence": self.confidence.value,
            "rule": self.rule,
        }


@dataclass
class MatchRunResult:
    """Outcome of one auto-match run over a statement."""

    statement_id: int
    candidates_considered: int = 0
    pool_size: int = 0
    decisions: list[MatchDecision] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return len(self.decisions)


def month_window(statement_month: str, buffer_days: int) -> tuple[str, str]:
    """[first day - buffer, last day + buffer] of a YYYY-MM month, as ISO dates."""
    year, month = (int(part) for part in statement_month.split("-", 1))
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    start = first - timedelta(days=buffer_days)
    end = last + timedelta(days=buffer_days)
    return start.isoformat(), end.isoformat()


def _days_apart(a: str, b: str | None) -> int | None:
    if not b:
        return None
    try:
        return abs((date.fromisoformat(a[:10]) - date.fromisoformat(b[:10])).days)
    except ValueError:
        return None


class AutoMatcher:
    """Matches unmatched statement debits against the ledger's paid expenses."""

    def __init__(
        self,
        store: StateStore,
        ledger: ExpenseLedger,
        config: MatchingConfig,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.config = config

    def match_statement(self, statement_id: int) -> MatchRunResult:
        """Run the matching rules over one statement and commit every match.

        Raises:
            LookupError: the statement does not exist
        """
        statement = self.store.get_statement(statement_id)
        if statement is None:
            raise LookupError(f"Statement {statement_id} not found")

        result = MatchRunResult(statement_id=statement_id)

        start, end = month_window(statement.statement_month, self.config.pool_buffer_days)
        linked = self.store.get_linked_expense_ids(statement_id)
        pool = [e for e in self.ledger.list_paid_expenses(start, end) if e.id not in linked]
        result.pool_size = len(pool)

        candidates = [
            txn
            for txn in self.store.list_unmatched_transactions(statement_id)
            if txn.amount < 0 and txn.transaction_type != TransactionType.FEE
        ]
        result.candidates_considered = len(candidates)

        logger.debug(
            "Auto-matching statement %s: %d candidates, %d expenses in %s..%s",
            statement_id,
            len(candidates),
            len(pool),
            start,
            end,
        )

        for txn in candidates:
            if not pool:
                break

            found = self._find_match(txn, pool)
            if found is None:
                continue

            expense, confidence, rule = found
            if not self.store.match_transaction(txn.id, expense.id, confidence):
                continue

            pool.remove(expense)
            result.decisions.append(
                MatchDecision(
                    transaction_id=txn.id,
                    expense_id=expense.id,
                    confidence=confidence,
                    rule=rule,
                )
            )
            logger.debug(
                "Matched transaction %s to expense %s (%s)", txn.id, expense.id, rule
            )

        logger.info(
            "Auto-matched %d of %d candidates for statement %s",
            result.matched_count,
            len(candidates),
            statement_id,
        )
        return result

    def _find_match(
        self, txn: TransactionRecord, pool: list[Expense]
    ) -> tuple[Expense, MatchConfidence, str] | None:
        """Apply the rules in precedence order across the whole pool."""
        amount = abs(txn.amount)

        if txn.check_number:
            for expense in pool:
                if expense.check_number and expense.check_number == txn.check_number:
                    return expense, MatchConfidence.AUTO_EXACT, MatchRule.CHECK_NUMBER

        same_amount = [e for e in pool if e.amount == amount]

        for expense in same_amount:
            days = _days_apart(txn.posting_date, expense.date_paid)
            if days is not None and days <= self.config.date_tolerance_days:
                return expense, MatchConfidence.AUTO_FUZZY, MatchRule.AMOUNT_DATE

        if txn.vendor_hint:
            hint = txn.vendor_hint.lower()
            for expense in same_amount:
                if hint in expense.vendor_name.lower():
                    return expense, MatchConfidence.AUTO_FUZZY, MatchRule.AMOUNT_VENDOR

        return None
