"""Cell audit — report revenue cells the amount normalizer read as suspicious.

The normalizer turns unreadable cells into zero revenue without complaint.
This module surfaces those cells (and negative amounts) so callers can show
them; it never changes the amounts the metrics see.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from revenue_brain.ingestion.amount_normalizer import (
    is_blank,
    is_clean_decimal,
    normalize_amount,
    parse_decimal,
    strip_currency,
)

if TYPE_CHECKING:
    from revenue_brain.metrics.matrix import RevenueMatrix

REASON_UNPARSEABLE = "unparseable"
REASON_PARTIAL = "partially_parsed"
REASON_NEGATIVE = "negative_amount"


@dataclass(frozen=True)
class CellIssue:
    """One suspicious cell."""

    customer: str
    month: str
    raw_value: str
    reason: str
    amount: float


def audit_cell(raw: Any) -> str | None:
    """Return the issue reason for a single raw cell, or None if it reads cleanly."""
    if is_blank(raw):
        return None
    if isinstance(raw, bool):
        return REASON_UNPARSEABLE
    amount = normalize_amount(raw)
    if amount < 0:
        return REASON_NEGATIVE
    if isinstance(raw, (int, float)):
        return None

    cleaned = strip_currency(str(raw))
    parsed = parse_decimal(cleaned)
    if parsed is None:
        return REASON_UNPARSEABLE
    if not is_clean_decimal(cleaned):
        return REASON_PARTIAL
    return None


def audit_matrix(matrix: RevenueMatrix) -> list[CellIssue]:
    """Scan every (customer, month) cell of a RevenueMatrix, in matrix order."""
    issues: list[CellIssue] = []
    for record in matrix.customers:
        for month in matrix.axis:
            raw = record.cells.get(month)
            reason = audit_cell(raw)
            if reason is None:
                continue
            issues.append(CellIssue(
                customer=record.customer,
                month=month,
                raw_value=str(raw),
                reason=reason,
                amount=matrix.amount(record.customer, month),
            ))
    return issues


def summarize_issues(issues: list[CellIssue]) -> dict:
    """Counts of issues by reason, plus affected customers."""
    by_reason = Counter(i.reason for i in issues)
    return {
        "total": len(issues),
        "by_reason": dict(sorted(by_reason.items())),
        "customers_affected": len({i.customer for i in issues}),
    }
