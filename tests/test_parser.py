"""Tests for the bank statement parser."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from statement_recon.extractors import TextExtractionError
from statement_recon.parsers import (
    ParseContext,
    StatementParseError,
    StatementParser,
    split_sections,
    truncate_trailing_images,
)
from statement_recon.schemas import TransactionType

HEADER = """\
                                                        Statement Period: {period}
                                                        Primary Account #:               428-0712609
Beginning Balance                    1,000.00
Ending Balance                         500.00

"""


def statement(body: str, period: str = "Dec 01 2025-Dec 31 2025") -> str:
    return HEADER.format(period=period) + body


@pytest.fixture
def parser() -> StatementParser:
    return StatementParser()


class TestParseContext:
    """Tests for record date inference."""

    def test_same_year(self):
        ctx = ParseContext(reference_year=2025, reference_month=6)
        assert ctx.posting_date("06/15") == "2025-06-15"

    def test_december_statement_january_record(self):
        ctx = ParseContext(reference_year=2025, reference_month=12)
        assert ctx.posting_date("01/02") == "2026-01-02"

    def test_january_statement_december_record(self):
        ctx = ParseContext(reference_year=2026, reference_month=1)
        assert ctx.posting_date("12/31") == "2025-12-31"

    def test_invalid_date_is_none(self):
        ctx = ParseContext(reference_year=2025, reference_month=2)
        assert ctx.posting_date("02/30") is None
        assert ctx.posting_date("13/01") is None

    def test_from_month(self):
        ctx = ParseContext.from_month("2025-03")
        assert ctx.reference_year == 2025
        assert ctx.reference_month == 3
        assert ctx.statement_month == "2025-03"


class TestFullStatement:
    """Parsing the complete sample statement."""

    def test_header_fields(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        assert result.statement_month == "2025-12"
        assert result.account_last_four == "2609"
        assert result.beginning_balance == Decimal("12000.00")
        assert result.ending_balance == Decimal("10685.00")

    def test_record_order_follows_sections(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        types = [t.transaction_type for t in result.transactions]
        assert types == [
            TransactionType.DEPOSIT,
            TransactionType.DEPOSIT,
            TransactionType.CREDIT,
            TransactionType.CHECK,
            TransactionType.CHECK,
            TransactionType.DEBIT,
            TransactionType.DEBIT,
            TransactionType.WITHDRAWAL,
            TransactionType.FEE,
        ]

    def test_signs_follow_types(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        for txn in result.transactions:
            if txn.transaction_type in (TransactionType.DEPOSIT, TransactionType.CREDIT):
                assert txn.amount > 0
            else:
                assert txn.amount < 0

    def test_multi_line_payment_block(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        jetro = result.transactions[5]
        assert jetro.posting_date == "2025-12-02"
        assert jetro.amount == Decimal("-1525.50")
        assert jetro.description.startswith("DEBIT POS AP, AUT 120225 DDA PURCHASE AP")
        assert "JETRO CASH CARRY" in jetro.description
        assert "4085404039877380" not in jetro.description
        assert jetro.vendor_hint == "Jetro"
        assert jetro.category == "expense"

    def test_continued_section_is_joined(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        payments = [t for t in result.transactions if t.transaction_type == TransactionType.DEBIT]
        assert [p.posting_date for p in payments] == ["2025-12-02", "2025-12-10"]
        assert payments[1].vendor_hint == "Con Edison"

    def test_checks(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        checks = [t for t in result.transactions if t.transaction_type == TransactionType.CHECK]
        assert [c.check_number for c in checks] == ["2730", "2739"]
        assert checks[0].description == "Check #2730"
        assert checks[0].amount == Decimal("-500.00")
        assert checks[1].amount == Decimal("-1614.50")
        assert all(c.category == "expense_check" for c in checks)

    def test_check_image_pages_are_ignored(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        assert "9999" not in [t.check_number for t in result.transactions]

    def test_categories_and_hints(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)
        by_date = {(t.posting_date, t.transaction_type): t for t in result.transactions}

        assert by_date[("2025-12-01", TransactionType.DEPOSIT)].category == "income_cards"
        assert by_date[("2025-12-15", TransactionType.DEPOSIT)].category == "income_delivery"
        assert by_date[("2025-12-09", TransactionType.CREDIT)].category == "refund"
        assert by_date[("2025-12-20", TransactionType.WITHDRAWAL)].category == "atm"

        fee = by_date[("2025-12-31", TransactionType.FEE)]
        assert fee.category == "fee"
        assert fee.vendor_hint == "TD Bank"
        assert fee.amount == Decimal("-15.00")

    def test_declared_subtotals(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        assert result.electronic_deposits == Decimal("2450.00")
        assert result.electronic_payments == Decimal("1600.50")
        assert result.checks_paid == Decimal("2114.50")
        assert result.service_fees == Decimal("15.00")

    def test_verification_passes(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        assert result.verification is not None
        assert result.verification.ok
        assert result.verification.computed_ending_balance == Decimal("10685.00")
        assert {s.bucket for s in result.verification.subtotals} == {
            "deposits",
            "payments",
            "checks",
            "fees",
        }

    def test_diagnostics(self, parser, sample_statement_text):
        result = parser.parse_text(sample_statement_text)

        assert result.diagnostics.characters_in == len(sample_statement_text)
        assert result.diagnostics.characters_after_truncation < len(sample_statement_text)
        assert result.diagnostics.section_records == {
            "deposits": 2,
            "credits": 1,
            "checks": 2,
            "payments": 2,
            "withdrawals": 1,
            "fees": 1,
        }

    def test_deterministic(self, parser, sample_statement_text):
        first = parser.parse_text(sample_statement_text)
        second = StatementParser().parse_text(sample_statement_text)

        assert first.transactions == second.transactions


class TestSections:
    """Section detection edge cases."""

    def test_single_check_line(self, parser):
        text = statement(
            "Checks Paid\n"
            "DATE      SERIAL NO.          AMOUNT\n"
            "12/01   2730        500.00\n"
        )
        result = parser.parse_text(text)

        assert len(result.transactions) == 1
        check = result.transactions[0]
        assert check.posting_date == "2025-12-01"
        assert check.description == "Check #2730"
        assert check.amount == Decimal("-500.00")
        assert check.transaction_type == TransactionType.CHECK
        assert check.check_number == "2730"
        assert check.category == "expense_check"

    def test_duplicate_check_serial_kept_once(self, parser):
        text = statement(
            "Checks Paid\n"
            "DATE      SERIAL NO.          AMOUNT          DATE      SERIAL NO.          AMOUNT\n"
            "12/01     2730                500.00          12/03     2731*               20.00\n"
            "12/01     2730                500.00\n"
        )
        result = parser.parse_text(text)

        assert [t.check_number for t in result.transactions] == ["2730", "2731"]

    def test_summary_mentions_are_not_sections(self, parser):
        text = statement(
            "Electronic Deposits                  2,450.00\n"
            "Other Credits                           25.00\n"
            "12/01            NOT A TABLE ROW                       99.00\n"
        )
        result = parser.parse_text(text)

        assert result.transactions == []

    def test_no_sections_yields_empty_list(self, parser):
        result = parser.parse_text(statement("Nothing to see here\n"))

        assert result.transactions == []
        assert result.statement_month == "2025-12"

    def test_noise_and_short_lines_removed(self, parser):
        text = statement(
            "Other Credits\n"
            "POSTING DATE     DESCRIPTION                        AMOUNT\n"
            "xxxxxx\n"
            "ab\n"
            "12/09            OD GRACE REFUND                     25.00\n"
        )
        result = parser.parse_text(text)

        assert len(result.transactions) == 1
        assert result.diagnostics.skipped_lines["credits"] == 0

    def test_unparseable_line_is_skipped(self, parser):
        text = statement(
            "Electronic Deposits\n"
            "POSTING DATE     DESCRIPTION                        AMOUNT\n"
            "12/01            GOOD ROW                         100.00\n"
            "garbled row without amount\n"
            "02/30            IMPOSSIBLE DATE                  100.00\n"
        )
        result = parser.parse_text(text)

        assert len(result.transactions) == 1
        assert result.diagnostics.skipped_lines["deposits"] == 2

    def test_withdrawal_digit_run_continuation_dropped(self, parser):
        text = statement(
            "Other Withdrawals\n"
            "POSTING DATE     DESCRIPTION                        AMOUNT\n"
            "12/20            TRANSFER TO SAVINGS               200.00\n"
            "                    REF 7781\n"
            "                    000123456789012\n"
        )
        result = parser.parse_text(text)

        assert len(result.transactions) == 1
        txn = result.transactions[0]
        assert txn.description == "TRANSFER TO SAVINGS REF 7781"
        assert txn.category == "transfer"
        assert txn.amount == Decimal("-200.00")

    def test_year_boundary_records(self, parser):
        text = statement(
            "Electronic Payments\n"
            "POSTING DATE     DESCRIPTION                        AMOUNT\n"
            "01/02            LATE POSTING VENDOR                  10.00\n",
        )
        result = parser.parse_text(text)

        assert result.transactions[0].posting_date == "2026-01-02"

    def test_subtotal_bounded_by_section(self, parser):
        text = statement(
            "Electronic Deposits\n"
            "POSTING DATE     DESCRIPTION                        AMOUNT\n"
            "12/01            DEPOSIT                          100.00\n"
            "Electronic Payments\n"
            "POSTING DATE     DESCRIPTION                        AMOUNT\n"
            "12/02            PAYMENT                           40.00\n"
            "                                       Subtotal:    40.00\n"
        )
        result = parser.parse_text(text)

        # Deposits declare no subtotal of their own
        assert result.electronic_deposits == Decimal("0.00")
        assert result.electronic_payments == Decimal("40.00")
        deposits_check = next(s for s in result.verification.subtotals if s.bucket == "deposits")
        assert deposits_check.delta == Decimal("100.00")
        assert not result.verification.ok


class TestHeader:
    """Header edge cases."""

    def test_full_month_name(self, parser):
        result = parser.parse_text(statement("", period="January 01 2026-January 31 2026"))
        assert result.statement_month == "2026-01"

    def test_missing_period_uses_fallback(self, parser):
        result = parser.parse_text("Beginning Balance 10.00\n", fallback_month="2025-07")

        assert result.statement_month == "2025-07"
        assert result.beginning_balance == Decimal("10.00")
        assert result.ending_balance == Decimal("0.00")
        assert result.account_last_four == ""

    def test_missing_period_without_fallback_fails(self, parser):
        with pytest.raises(StatementParseError):
            parser.parse_text("no header here\n")

    def test_negative_ending_balance(self, parser):
        text = "Statement Period: Mar 01 2025-Mar 31 2025\nEnding Balance   -$1,234.56\n"
        result = parser.parse_text(text)
        assert result.ending_balance == Decimal("-1234.56")

        text = "Statement Period: Mar 01 2025-Mar 31 2025\nEnding Balance   $-12.00\n"
        result = parser.parse_text(text)
        assert result.ending_balance == Decimal("-12.00")


class TestTruncation:
    def test_no_summary_unchanged(self):
        assert truncate_trailing_images("abc") == "abc"

    def test_summary_without_footer_unchanged(self):
        text = "DAILY BALANCE SUMMARY\n12/01 100.00\n"
        assert truncate_trailing_images(text) == text

    def test_cut_at_footer_after_last_summary(self):
        text = "A\nDAILY BALANCE SUMMARY\nB\nCall 1-800-937-2000 now\nIMAGES"
        assert truncate_trailing_images(text) == "A\nDAILY BALANCE SUMMARY\nB\n"

    def test_split_sections_keys(self, sample_statement_text):
        sections = split_sections(truncate_trailing_images(sample_statement_text))
        assert set(sections) == {
            "deposits",
            "credits",
            "checks",
            "payments",
            "withdrawals",
            "fees",
        }


class TestParseFromFile:
    def test_extractor_failure_is_parse_error(self, parser, tmp_path):
        extractor = MagicMock()
        extractor.extract_text.side_effect = TextExtractionError("pdftotext missing")

        with pytest.raises(StatementParseError, match="pdftotext missing"):
            parser.parse(tmp_path / "x.pdf", extractor)

    def test_timeout_and_fallback_passed_through(self, parser, tmp_path, sample_statement_text):
        extractor = MagicMock()
        extractor.extract_text.return_value = sample_statement_text

        result = parser.parse(tmp_path / "x.pdf", extractor, timeout=12.5, fallback_month="2025-01")

        extractor.extract_text.assert_called_once_with(tmp_path / "x.pdf", timeout=12.5)
        assert result.statement_month == "2025-12"
