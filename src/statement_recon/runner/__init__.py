"""
CLI runner module.

Provides commands:
- upload / reparse: Store a statement and queue its parse job
- worker: Process queued jobs
- parse: Dry-run parse report of a statement file
- match / unmatch / ignore / create-expense / set-type: Review actions
- complete / stats: Finish and summarize a reconciliation
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
