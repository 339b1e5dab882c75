"""Amount normalizer — turn spreadsheet revenue cells into monetary amounts.

Cells arrive as numbers, currency-formatted strings ("$1,234.50"),
placeholder tokens ("-", "$-", "N/A") or blanks.  Anything that cannot be
read as a number counts as zero revenue; the normalizer never raises.
"""

from __future__ import annotations

import math
import re

# Tokens spreadsheets use for "no revenue this month" (exact match after trim)
ZERO_TOKENS = frozenset({"-", "$-", "N/A"})

_STRIP_RE = re.compile(r"[\s$,]")
_LEADING_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def normalize_amount(raw) -> float:
    """Normalize a raw cell value into a revenue amount.

    Numbers pass through unchanged (NaN, as produced by pandas for empty
    cells, counts as blank).  Booleans are not amounts and give 0, as do
    falsy values and the zero tokens.  Strings are stripped of whitespace,
    ``$`` and ``,`` and parsed as a decimal; a failed parse gives 0.
    """
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return 0.0 if math.isnan(raw) else raw
    if not raw:
        return 0.0

    text = str(raw)
    if text.strip() in ZERO_TOKENS:
        return 0.0

    parsed = parse_decimal(strip_currency(text))
    return 0.0 if parsed is None else parsed


def strip_currency(text: str) -> str:
    """Remove whitespace, ``$`` and ``,`` from a cell's text."""
    return _STRIP_RE.sub("", text)


def parse_decimal(text: str) -> float | None:
    """Parse the leading decimal number of *text*, or None if there is none.

    Lenient like spreadsheet parsing: "12.5abc" reads as 12.5, while
    "abc" and "" read as nothing.
    """
    match = _LEADING_NUMBER_RE.match(text)
    if not match:
        return None
    return float(match.group(0))


def is_blank(raw) -> bool:
    """True when *raw* is empty or one of the recognized "no revenue" tokens."""
    if raw is None:
        return True
    if isinstance(raw, float) and math.isnan(raw):
        return True
    if isinstance(raw, (int, float)):
        return False
    text = str(raw).strip()
    return text == "" or text in ZERO_TOKENS


def is_clean_decimal(text: str) -> bool:
    """True when the whole of *text* is a decimal number (nothing left over)."""
    return _LEADING_NUMBER_RE.fullmatch(text) is not None
