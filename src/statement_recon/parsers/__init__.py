"""
Bank statement parsers.

Provides:
- StatementParser: layout text -> ParsedStatement
- ParseContext: reference period used to date records
- StatementParseError: the only fatal parse failure
- Vendor / category heuristics
"""

from .heuristics import categorize_transaction, extract_vendor_hint
from .statement_parser import (
    ParseContext,
    StatementParseError,
    StatementParser,
    split_sections,
    truncate_trailing_images,
)

__all__ = [
    "ParseContext",
    "StatementParseError",
    "StatementParser",
    "categorize_transaction",
    "extract_vendor_hint",
    "split_sections",
    "truncate_trailing_images",
]
