"""
Statement data schemas.

Provides:
- ParsedStatement / ParsedTransaction: parser output
- TransactionType and the sign rule tying amount sign to type
- Status enums for statements and transaction records
- VerificationReport / ParseDiagnostics: non-blocking parse diagnostics
"""

from .statement import (
    LINKED_STATUSES,
    POSITIVE_TYPES,
    MatchConfidence,
    MatchStatus,
    ParseDiagnostics,
    ParsedStatement,
    ParsedTransaction,
    StatementStatus,
    SubtotalCheck,
    TransactionType,
    VerificationReport,
    signed_amount,
)

__all__ = [
    "LINKED_STATUSES",
    "POSITIVE_TYPES",
    "MatchConfidence",
    "MatchStatus",
    "ParseDiagnostics",
    "ParsedStatement",
    "ParsedTransaction",
    "StatementStatus",
    "SubtotalCheck",
    "TransactionType",
    "VerificationReport",
    "signed_amount",
]
