"""
Bank statement text parser.

Turns the layout-preserved text of one monthly statement into a
ParsedStatement. The layout handled here:

    Statement Period: Dec 01 2025-Dec 31 2025
    Primary Account #: 428-0712609
    Beginning Balance          $12,000.00
    ...
    Electronic Payments
    POSTING DATE    DESCRIPTION                                     AMOUNT
    12/02           DEBIT POS AP, AUT 120225 DDA PURCHASE AP      1,525.50
                       JETRO CASH CARRY      BROOKLYN     * NY
                       4085404039877380
                                                   Subtotal:     1,525.50

Failure policy:
- Text extraction failure is fatal (StatementParseError)
- A line or section that does not fit its pattern is skipped
- Identical text always yields the identical ordered record list
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from ..extractors.base import BaseTextExtractor, TextExtractionError
from ..schemas.statement import (
    ParseDiagnostics,
    ParsedStatement,
    ParsedTransaction,
    SubtotalCheck,
    TransactionType,
    VerificationReport,
)
from .heuristics import categorize_transaction, extract_vendor_hint

logger = logging.getLogger(__name__)


class StatementParseError(Exception):
    """Raised when a statement cannot be parsed at all."""

    pass


# Everything after the last balance summary's footer is check facsimile pages
BALANCE_SUMMARY_MARKER = "DAILY BALANCE SUMMARY"
PAGE_FOOTER_MARKER = "Call 1-800-937-2000"

# Markers that end a section chunk (page break or next region)
CHUNK_END_MARKERS = [
    "Subtotal:",
    BALANCE_SUMMARY_MARKER,
    PAGE_FOOTER_MARKER,
    "Bank Deposits FDIC Insured",
    "STATEMENT OF ACCOUNT",
    "Page:",
    "Statement Period:",
    "DAILY ACCOUNT ACTIVITY",
    "POSTING DATE",
]

# Lines dropped from a section body before record parsing
NOISE_MARKERS = [
    PAGE_FOOTER_MARKER,
    "Bank Deposits FDIC Insured",
    "STATEMENT OF ACCOUNT",
    "xxxxxx",
    "Page:",
    "DAILY ACCOUNT ACTIVITY",
    "POSTING DATE",
    "SERIAL NO.",
]
MIN_LINE_LENGTH = 3

# Header patterns
PERIOD_PATTERN = re.compile(r"Statement Period:\s+([A-Za-z]+)\s+\d+\s+(\d{4})")
ACCOUNT_PATTERN = re.compile(r"Account\s*#[:\s]+[\d-]*(\d{4})")
BEGINNING_BALANCE_PATTERN = re.compile(r"Beginning\s+Balance\s+\$?([\d,]+\.\d{2})")
ENDING_BALANCE_PATTERN = re.compile(r"Ending\s+Balance\s+(-)?\$?(-?[\d,]+\.\d{2})")
SUBTOTAL_PATTERN = re.compile(r"Subtotal:\s*\$?([\d,]+\.\d{2})")

# Record patterns
TRANSACTION_LINE_PATTERN = re.compile(r"^(\d{2}/\d{2})\s+(.+?)\s{2,}([\d,]+\.\d{2})\s*$")
CONTINUATION_LINE_PATTERN = re.compile(r"^\s{6,}(\S.*)$")
DATED_LINE_PATTERN = re.compile(r"^\s*\d{2}/\d{2}\s")
CHECK_ENTRY_PATTERN = re.compile(r"(\d{2}/\d{2})\s+(\d+)\*?\s+([\d,]+\.\d{2})")
# Card / account numbers printed on their own continuation line
DIGIT_RUN_PATTERN = re.compile(r"^\d{12,}$")

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}


@dataclass(frozen=True)
class SectionDef:
    """One named transaction table of the statement."""

    key: str
    title: str
    transaction_type: TransactionType
    layout: str  # "single", "multi" or "checks"
    column_header: str  # regex for the line right below the title


POSTING_COLUMNS = r"POSTING\s+DATE"
CHECK_COLUMNS = r"DATE\s+SERIAL\s+NO"

# Order here is the order records appear in the output
SECTIONS: list[SectionDef] = [
    SectionDef("deposits", "Electronic Deposits", TransactionType.DEPOSIT, "single", POSTING_COLUMNS),
    SectionDef("credits", "Other Credits", TransactionType.CREDIT, "single", POSTING_COLUMNS),
    SectionDef("checks", "Checks Paid", TransactionType.CHECK, "checks", CHECK_COLUMNS),
    SectionDef("payments", "Electronic Payments", TransactionType.DEBIT, "multi", POSTING_COLUMNS),
    SectionDef("withdrawals", "Other Withdrawals", TransactionType.WITHDRAWAL, "multi", POSTING_COLUMNS),
    SectionDef("fees", "Service Charges", TransactionType.FEE, "single", POSTING_COLUMNS),
]

# Declared subtotal field on ParsedStatement for each verified section
DECLARED_SUBTOTAL_FIELDS = {
    "deposits": "electronic_deposits",
    "payments": "electronic_payments",
    "checks": "checks_paid",
    "fees": "service_fees",
}

# Any section title at line start: ends the previous section's chunk
ANY_SECTION_TITLE_PATTERN = re.compile(
    r"^[ \t]*(?:" + "|".join(re.escape(s.title) for s in SECTIONS) + r")\b",
    re.MULTILINE,
)


def _section_start_pattern(section: SectionDef) -> re.Pattern[str]:
    """Title line (optionally "(continued)"), blank lines, then the column header line."""
    return re.compile(
        r"^[ \t]*" + re.escape(section.title) + r"\b[^\n]*\n"
        r"(?:[ \t]*\n)*"
        r"[ \t]*" + section.column_header + r"[^\n]*(?:\n|$)",
        re.MULTILINE,
    )


SECTION_START_PATTERNS = {section.key: _section_start_pattern(section) for section in SECTIONS}


def parse_amount(value: str) -> Decimal:
    """Convert "1,234.56" / "$1,234.56" / "-1,234.56" to Decimal."""
    cleaned = value.replace(",", "").replace("$", "").strip()
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def month_name_to_number(name: str) -> int:
    """Convert a month name or abbreviation to 1-12 (0 if unknown)."""
    return MONTHS.get(name.lower(), 0)


@dataclass(frozen=True)
class ParseContext:
    """Reference period every section routine uses to date its records."""

    reference_year: int
    reference_month: int

    @classmethod
    def from_month(cls, statement_month: str) -> "ParseContext":
        """Build from "YYYY-MM"."""
        year, month = statement_month.split("-", 1)
        return cls(reference_year=int(year), reference_month=int(month))

    @property
    def statement_month(self) -> str:
        return f"{self.reference_year:04d}-{self.reference_month:02d}"

    def year_for(self, month: int) -> int:
        """Infer the calendar year of a record month across a year boundary."""
        if self.reference_month == 12 and month == 1:
            return self.reference_year + 1
        if self.reference_month == 1 and month == 12:
            return self.reference_year - 1
        return self.reference_year

    def posting_date(self, mmdd: str) -> Optional[str]:
        """Convert "MM/DD" to "YYYY-MM-DD", or None if it is not a real date."""
        try:
            month_str, day_str = mmdd.split("/")
            month, day = int(month_str), int(day_str)
            return date(self.year_for(month), month, day).isoformat()
        except ValueError:
            return None


class StatementParser:
    """
    Parser for one known bank statement layout.

    Stateless: the reference period is carried in an explicit ParseContext,
    so one instance may parse any number of statements.
    """

    VERSION = "1.0.0"

    def parse(
        self,
        path: Path,
        extractor: BaseTextExtractor,
        timeout: Optional[float] = None,
        fallback_month: Optional[str] = None,
    ) -> ParsedStatement:
        """
        Extract text from a stored statement and parse it.

        Args:
            path: Local path of the statement file
            extractor: Text extractor to convert the file
            timeout: Seconds left for extraction (job deadline)
            fallback_month: "YYYY-MM" used when the text has no statement period

        Raises:
            StatementParseError: extraction failed or the period is unknown
        """
        try:
            text = extractor.extract_text(path, timeout=timeout)
        except TextExtractionError as e:
            raise StatementParseError(f"extract text: {e}") from e

        return self.parse_text(text, fallback_month=fallback_month)

    def parse_text(self, text: str, fallback_month: Optional[str] = None) -> ParsedStatement:
        """Parse raw layout-preserved statement text."""
        diagnostics = ParseDiagnostics(characters_in=len(text))

        text = truncate_trailing_images(text)
        diagnostics.characters_after_truncation = len(text)

        stmt, context = self._parse_header(text, fallback_month)
        stmt.diagnostics = diagnostics

        sections = split_sections(text)
        for section in SECTIONS:
            body = sections.get(section.key, "")
            diagnostics.section_lines[section.key] = len(body.splitlines())

            if section.layout == "checks":
                records = self._parse_checks(context, body)
            elif section.layout == "multi":
                records = self._parse_multi_line(context, body, section, diagnostics)
            else:
                records = self._parse_single_line(context, body, section, diagnostics)

            diagnostics.section_records[section.key] = len(records)
            stmt.transactions.extend(records)

        for key, field_name in DECLARED_SUBTOTAL_FIELDS.items():
            setattr(stmt, field_name, extract_section_subtotal(text, key))

        stmt.verification = verify_statement(stmt)

        logger.debug(
            "Parsed statement %s: %d transactions, sections=%s, skipped=%s, verification_ok=%s",
            stmt.statement_month,
            len(stmt.transactions),
            diagnostics.section_records,
            diagnostics.skipped_lines,
            stmt.verification.ok,
        )
        return stmt

    # Header

    def _parse_header(
        self, text: str, fallback_month: Optional[str]
    ) -> tuple[ParsedStatement, ParseContext]:
        stmt = ParsedStatement()

        context: Optional[ParseContext] = None
        match = PERIOD_PATTERN.search(text)
        if match:
            month = month_name_to_number(match.group(1))
            if month:
                context = ParseContext(reference_year=int(match.group(2)), reference_month=month)

        if context is None:
            if not fallback_month:
                raise StatementParseError("statement period not found")
            logger.warning(f"Statement period not found, using fallback {fallback_month}")
            try:
                context = ParseContext.from_month(fallback_month)
            except ValueError as e:
                raise StatementParseError(f"invalid fallback month {fallback_month!r}") from e

        stmt.statement_month = context.statement_month

        match = ACCOUNT_PATTERN.search(text)
        if match:
            stmt.account_last_four = match.group(1)

        match = BEGINNING_BALANCE_PATTERN.search(text)
        if match:
            stmt.beginning_balance = parse_amount(match.group(1))

        # Ending balance can be overdrawn: "-$12.00" or "$-12.00"
        match = ENDING_BALANCE_PATTERN.search(text)
        if match:
            amount = parse_amount(match.group(2))
            stmt.ending_balance = -abs(amount) if match.group(1) else amount

        return stmt, context

    # Sections

    def _build(
        self,
        context: ParseContext,
        section: SectionDef,
        mmdd: str,
        description: str,
        amount: Decimal,
    ) -> Optional[ParsedTransaction]:
        posting_date = context.posting_date(mmdd)
        if posting_date is None:
            return None
        if not section.transaction_type.is_credit:
            amount = -amount
        return ParsedTransaction(
            posting_date=posting_date,
            description=description,
            amount=amount,
            transaction_type=section.transaction_type,
        )

    def _enrich(self, txn: ParsedTransaction) -> ParsedTransaction:
        if txn.transaction_type == TransactionType.FEE:
            txn.category = "fee"
            txn.vendor_hint = "TD Bank"
        else:
            txn.category = categorize_transaction(
                txn.transaction_type, txn.description, txn.amount
            )
            txn.vendor_hint = extract_vendor_hint(txn.description)
        return txn

    def _parse_single_line(
        self,
        context: ParseContext,
        body: str,
        section: SectionDef,
        diagnostics: ParseDiagnostics,
    ) -> list[ParsedTransaction]:
        """DATE  DESCRIPTION  AMOUNT - one record per line."""
        transactions: list[ParsedTransaction] = []
        skipped = 0

        for line in body.splitlines():
            match = TRANSACTION_LINE_PATTERN.match(line)
            if not match:
                skipped += 1
                continue
            txn = self._build(
                context, section, match.group(1), match.group(2).strip(), parse_amount(match.group(3))
            )
            if txn is None:
                skipped += 1
                continue
            transactions.append(self._enrich(txn))

        diagnostics.skipped_lines[section.key] = skipped
        return transactions

    def _parse_multi_line(
        self,
        context: ParseContext,
        body: str,
        section: SectionDef,
        diagnostics: ParseDiagnostics,
    ) -> list[ParsedTransaction]:
        """
        A dated line opens a record; indented undated lines extend its
        description until the next dated line or the end of the section.
        """
        transactions: list[ParsedTransaction] = []
        current: Optional[ParsedTransaction] = None
        skipped = 0

        for line in body.splitlines():
            match = TRANSACTION_LINE_PATTERN.match(line)
            if match or DATED_LINE_PATTERN.match(line):
                if current is not None:
                    transactions.append(self._enrich(current))
                    current = None
                if match:
                    current = self._build(
                        context,
                        section,
                        match.group(1),
                        match.group(2).strip(),
                        parse_amount(match.group(3)),
                    )
                if current is None:
                    skipped += 1
                continue

            continuation = CONTINUATION_LINE_PATTERN.match(line)
            if current is not None and continuation:
                text = continuation.group(1).strip()
                if not DIGIT_RUN_PATTERN.match(text):
                    current.description += " " + text
            else:
                skipped += 1

        if current is not None:
            transactions.append(self._enrich(current))

        diagnostics.skipped_lines[section.key] = skipped
        return transactions

    def _parse_checks(self, context: ParseContext, body: str) -> list[ParsedTransaction]:
        """
        Two visual columns, one logical list:

            12/01   2730        500.00     12/18   2739*     1,614.50

        A serial number seen twice (column artifact) yields one record.
        """
        transactions: list[ParsedTransaction] = []
        seen: set[str] = set()

        for match in CHECK_ENTRY_PATTERN.finditer(body):
            check_number = match.group(2)
            if check_number in seen:
                continue

            posting_date = context.posting_date(match.group(1))
            if posting_date is None:
                continue
            seen.add(check_number)

            transactions.append(
                ParsedTransaction(
                    posting_date=posting_date,
                    description=f"Check #{check_number}",
                    amount=-parse_amount(match.group(3)),
                    transaction_type=TransactionType.CHECK,
                    category="expense_check",
                    check_number=check_number,
                )
            )

        return transactions


def truncate_trailing_images(text: str) -> str:
    """Drop everything after the final balance summary's page footer."""
    summary_idx = text.rfind(BALANCE_SUMMARY_MARKER)
    if summary_idx == -1:
        return text

    footer_idx = text.find(PAGE_FOOTER_MARKER, summary_idx)
    if footer_idx == -1:
        return text

    return text[:footer_idx]


def _find_section_starts(text: str) -> list[tuple[int, int, str]]:
    """All (start, body_start, key) section table starts, in document order."""
    starts = []
    for key, pattern in SECTION_START_PATTERNS.items():
        for match in pattern.finditer(text):
            starts.append((match.start(), match.end(), key))
    starts.sort()
    return starts


def _chunk_end(text: str, body_start: int) -> int:
    """Position where the section chunk starting at body_start stops."""
    end = len(text)
    for marker in CHUNK_END_MARKERS:
        idx = text.find(marker, body_start)
        if idx != -1 and idx < end:
            end = idx

    match = ANY_SECTION_TITLE_PATTERN.search(text, body_start)
    if match and match.start() < end:
        end = match.start()

    return end


def clean_section_content(content: str) -> str:
    """Remove page footers, repeated headers and near-empty lines."""
    cleaned = []
    for line in content.splitlines():
        if len(line.strip()) < MIN_LINE_LENGTH:
            continue
        if any(marker in line for marker in NOISE_MARKERS):
            continue
        cleaned.append(line)
    return "\n".join(cleaned)


def split_sections(text: str) -> dict[str, str]:
    """
    Split statement text into the six section bodies.

    A section starts only where its title is directly followed by its
    column-header line, so summary lines that merely mention a section name
    are never mistaken for a table. Continuation pages are concatenated in
    document order. The text is assumed to hold exactly one statement.
    """
    chunks: dict[str, list[str]] = {section.key: [] for section in SECTIONS}

    for _, body_start, key in _find_section_starts(text):
        end = _chunk_end(text, body_start)
        chunk = clean_section_content(text[body_start:end])
        if chunk:
            chunks[key].append(chunk)

    return {key: "\n".join(parts) for key, parts in chunks.items()}


def extract_section_subtotal(text: str, key: str) -> Decimal:
    """
    Declared subtotal of one section.

    Searched from the section's first table start up to the start of a
    different section (continuation pages of the same section included) or
    the balance summary.
    """
    starts = _find_section_starts(text)
    first = next((s for s in starts if s[2] == key), None)
    if first is None:
        return Decimal("0.00")

    end = len(text)
    for start, _, other_key in starts:
        if start > first[0] and other_key != key:
            end = start
            break
    summary_idx = text.find(BALANCE_SUMMARY_MARKER, first[1])
    if summary_idx != -1 and summary_idx < end:
        end = summary_idx

    match = SUBTOTAL_PATTERN.search(text, first[1], end)
    if match:
        return parse_amount(match.group(1))
    return Decimal("0.00")


def verify_statement(stmt: ParsedStatement) -> VerificationReport:
    """Compare parsed amounts with declared subtotals and balances."""

    def total(*types: TransactionType) -> Decimal:
        return sum(
            (abs(t.amount) for t in stmt.transactions if t.transaction_type in types),
            Decimal("0.00"),
        )

    report = VerificationReport(
        subtotals=[
            SubtotalCheck("deposits", stmt.electronic_deposits, total(TransactionType.DEPOSIT)),
            SubtotalCheck("payments", stmt.electronic_payments, total(TransactionType.DEBIT)),
            SubtotalCheck("checks", stmt.checks_paid, total(TransactionType.CHECK)),
            SubtotalCheck("fees", stmt.service_fees, total(TransactionType.FEE)),
        ],
        beginning_balance=stmt.beginning_balance,
        ending_balance=stmt.ending_balance,
        computed_ending_balance=stmt.beginning_balance
        + sum((t.amount for t in stmt.transactions), Decimal("0.00")),
    )

    for check in report.subtotals:
        if not check.ok:
            logger.debug(
                "Subtotal mismatch for %s: declared=%s computed=%s delta=%s",
                check.bucket,
                check.declared,
                check.computed,
                check.delta,
            )
    return report
