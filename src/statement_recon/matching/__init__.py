"""Auto-matching of statement records to ledger expenses."""

from .auto_matcher import AutoMatcher, MatchDecision, MatchRule, MatchRunResult, month_window

__all__ = [
    "AutoMatcher",
    "MatchDecision",
    "MatchRule",
    "MatchRunResult",
    "month_window",
]
