"""
Category and vendor heuristics for statement descriptions.

Both are best-effort tags for the review screen and the auto-matcher; neither
is ever used to decide whether a line is a transaction.
"""

import re
from decimal import Decimal

from ..schemas.statement import TransactionType

# Known vendors: (clean name, pattern). Ordered - first match wins.
VENDOR_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("Jetro", re.compile(r"JETRO", re.IGNORECASE)),
    ("Chef's Choice", re.compile(r"CHEF.?S?\s*CHOICE", re.IGNORECASE)),
    ("Cogent Waste", re.compile(r"COGENT\s*WASTE", re.IGNORECASE)),
    ("Con Edison", re.compile(r"CON\s*ED", re.IGNORECASE)),
    ("National Grid", re.compile(r"NGRID|NATIONAL\s*GRID", re.IGNORECASE)),
    ("Uber Eats", re.compile(r"UBER", re.IGNORECASE)),
    ("Grubhub", re.compile(r"GRUBHUB", re.IGNORECASE)),
    ("DoorDash", re.compile(r"DOORDASH", re.IGNORECASE)),
    ("Verizon", re.compile(r"VERIZON", re.IGNORECASE)),
    ("AT&T", re.compile(r"\bATT\s|AT&T", re.IGNORECASE)),
    ("Sampar's", re.compile(r"SAMPARS?", re.IGNORECASE)),
    ("Clover", re.compile(r"CLOVER", re.IGNORECASE)),
    ("Cintas", re.compile(r"CINTAS", re.IGNORECASE)),
    ("Dish Network", re.compile(r"DISH\s*NETWORK", re.IGNORECASE)),
    ("Bankcard", re.compile(r"BANKCARD\s*MTOT", re.IGNORECASE)),
    ("Gobwa Exotic", re.compile(r"GOBWA\s*EXOTIC", re.IGNORECASE)),
    ("Caribbean Depot", re.compile(r"CARIBBEAN\s*DEPOT", re.IGNORECASE)),
    ("C&S Meats", re.compile(r"C\s*AND\s*S\s*MEATS", re.IGNORECASE)),
    ("Good Food", re.compile(r"GOOD\s*FOOD\s*FOR\s*LESS", re.IGNORECASE)),
    ("INP Foods", re.compile(r"INP\s*FOODS", re.IGNORECASE)),
    ("Wegmans", re.compile(r"WEGMANS", re.IGNORECASE)),
]

# Card purchases: "BUSINESS NAME  CITY  * ST"
BUSINESS_STATE_PATTERN = re.compile(r"([A-Z][A-Z0-9\s&']+?)\s+(?:[A-Z]+\s+)?\*\s*[A-Z]{2}")

# Bank boilerplate that precedes the merchant name
BANK_PREFIX_PATTERN = re.compile(r"^(?:(?:DBCRD|DEBIT|POS|AP|AUT|VISA|DDA|PUR)\s+)+")

MIN_VENDOR_LENGTH = 4

# Substring rules for money in: (category, keywords)
CREDIT_CATEGORY_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("income_cards", ("BANKCARD", "MTOT DEP")),
    ("income_delivery", ("UBER", "GRUBHUB", "DOORDASH")),
    ("refund", ("REFUND", "OD GRACE")),
]

# Substring rules for money out: (category, keywords)
DEBIT_CATEGORY_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("fee", ("OVERDRAFT",)),
    ("transfer", ("TRANSFER", "XFER")),
    ("atm", ("ATM",)),
]


def extract_vendor_hint(description: str) -> str:
    """
    Best-effort short vendor name for a transaction description.

    Known vendor patterns are tried in order; otherwise a "NAME [CITY] * ST"
    shape is extracted with bank prefix tokens removed. Returns "" when
    nothing plausible is found.
    """
    for vendor, pattern in VENDOR_PATTERNS:
        if pattern.search(description):
            return vendor

    match = BUSINESS_STATE_PATTERN.search(description)
    if match:
        vendor = BANK_PREFIX_PATTERN.sub("", match.group(1).strip())
        if len(vendor) >= MIN_VENDOR_LENGTH:
            return vendor

    return ""


def categorize_transaction(
    transaction_type: TransactionType | str,
    description: str,
    amount: Decimal,
) -> str:
    """Derive a category tag from type, description keywords and amount sign."""
    desc_upper = description.upper()

    if amount > 0:
        for category, keywords in CREDIT_CATEGORY_RULES:
            if any(keyword in desc_upper for keyword in keywords):
                return category
        return "income_other"

    txn_type = TransactionType(transaction_type)
    if txn_type == TransactionType.CHECK:
        return "expense_check"
    if txn_type == TransactionType.FEE:
        return "fee"

    for category, keywords in DEBIT_CATEGORY_RULES:
        if any(keyword in desc_upper for keyword in keywords):
            return category

    return "expense"
