"""
Canonical parsed-statement objects (SSOT).

Every parser output, store row and matcher input maps into/out of these
types. Amounts are always Decimal; negative = money out, positive = money in.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    """Bank transaction type as printed by the statement section it came from."""

    DEPOSIT = "deposit"
    CREDIT = "credit"
    CHECK = "check"
    DEBIT = "debit"
    WITHDRAWAL = "withdrawal"
    FEE = "fee"

    @property
    def is_credit(self) -> bool:
        """Return True if this type carries a positive amount."""
        return self in POSITIVE_TYPES


POSITIVE_TYPES = frozenset({TransactionType.DEPOSIT, TransactionType.CREDIT})


class StatementStatus(str, Enum):
    """Lifecycle of an uploaded statement document."""

    PENDING = "pending"
    PARSING = "parsing"
    PARSED = "parsed"
    RECONCILING = "reconciling"
    COMPLETED = "completed"


class MatchStatus(str, Enum):
    """Reconciliation state of a single transaction record."""

    UNMATCHED = "unmatched"
    MATCHED = "matched"
    IGNORED = "ignored"
    CREATED = "created"  # an expense was created from this record


class MatchConfidence(str, Enum):
    """How a record was linked to an expense."""

    AUTO_EXACT = "auto_exact"
    AUTO_FUZZY = "auto_fuzzy"
    MANUAL = "manual"
    CREATED = "created"
    NONE = ""


# Statuses that require matched_expense_id to be set
LINKED_STATUSES = frozenset({MatchStatus.MATCHED, MatchStatus.CREATED})


def signed_amount(transaction_type: TransactionType | str, amount: Decimal) -> Decimal:
    """Return amount with the sign its transaction type requires."""
    txn_type = TransactionType(transaction_type)
    magnitude = abs(amount)
    return magnitude if txn_type.is_credit else -magnitude


@dataclass
class ParsedTransaction:
    """A single transaction line (or multi-line block) from a statement."""

    posting_date: str  # YYYY-MM-DD
    description: str
    amount: Decimal
    transaction_type: TransactionType
    category: str = ""
    check_number: str = ""
    vendor_hint: str = ""
    reference_number: str = ""


@dataclass
class SubtotalCheck:
    """Declared vs computed total for one statement bucket."""

    bucket: str
    declared: Decimal
    computed: Decimal

    @property
    def delta(self) -> Decimal:
        return self.computed - self.declared

    @property
    def ok(self) -> bool:
        return self.delta == 0

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "declared": str(self.declared),
            "computed": str(self.computed),
            "delta": str(self.delta),
        }


@dataclass
class VerificationReport:
    """Diagnostic comparison of parsed amounts with the statement's own totals.

    Never a parse failure: a mismatch only signals that some lines were
    skipped or the layout drifted.
    """

    subtotals: list[SubtotalCheck] = field(default_factory=list)
    beginning_balance: Decimal = Decimal("0.00")
    ending_balance: Decimal = Decimal("0.00")
    computed_ending_balance: Decimal = Decimal("0.00")

    @property
    def balance_delta(self) -> Decimal:
        return self.computed_ending_balance - self.ending_balance

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.subtotals) and self.balance_delta == 0

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "subtotals": [s.to_dict() for s in self.subtotals],
            "computed_ending_balance": str(self.computed_ending_balance),
            "balance_delta": str(self.balance_delta),
        }


@dataclass
class ParseDiagnostics:
    """Optional tracing output of a parse run."""

    characters_in: int = 0
    characters_after_truncation: int = 0
    section_lines: dict[str, int] = field(default_factory=dict)
    section_records: dict[str, int] = field(default_factory=dict)
    skipped_lines: dict[str, int] = field(default_factory=dict)


@dataclass
class ParsedStatement:
    """A fully parsed bank statement: header fields + ordered records."""

    account_last_four: str = ""
    statement_month: str = ""  # YYYY-MM
    beginning_balance: Decimal = Decimal("0.00")
    ending_balance: Decimal = Decimal("0.00")
    transactions: list[ParsedTransaction] = field(default_factory=list)

    # Declared summary subtotals (verification only)
    electronic_deposits: Decimal = Decimal("0.00")
    electronic_payments: Decimal = Decimal("0.00")
    checks_paid: Decimal = Decimal("0.00")
    service_fees: Decimal = Decimal("0.00")

    verification: VerificationReport | None = None
    diagnostics: ParseDiagnostics = field(default_factory=ParseDiagnostics)
