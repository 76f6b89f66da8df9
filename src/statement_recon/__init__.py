"""
Bank statement → Transaction records → Job queue → Expense reconciliation

Parses monthly bank statements into normalized transaction records, runs the
parse as a persisted background job with retry semantics, and reconciles the
records against a ledger of paid expenses.
"""

__version__ = "0.1.0"
