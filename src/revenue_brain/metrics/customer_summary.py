"""Customer summaries — one lifetime record per customer.

Start and end dates are inferred from revenue (first and last month with
revenue > 0), not taken from the declared start/end columns, which are
carried alongside for reference only.
"""

from __future__ import annotations

from dataclasses import dataclass

from revenue_brain.metrics.matrix import CustomerRecord, RevenueMatrix
from revenue_brain.metrics.monthly_metrics import MONTHS_PER_YEAR

STATUS_ACTIVE = "Active"
STATUS_CHURNED = "Churned"
NO_DATE = "N/A"
STILL_ACTIVE = "--"


@dataclass(frozen=True)
class CustomerSummary:
    """Lifetime and last-quarter view of a single customer."""

    id: str
    customer: str
    current_mrr: float
    last_quarter_mrr: float
    arr: float
    quarterly_change_pct: float
    status: str  # "Active" | "Churned"
    start_date: str  # first month with revenue, or "N/A"
    end_date: str  # "--" while active, else last month with revenue, or "N/A"
    ltv: float
    declared_start_date: str | None = None
    declared_end_date: str | None = None


def summarize_customer(
    matrix: RevenueMatrix,
    record: CustomerRecord,
    last_month: str,
    last_quarter_month: str,
) -> CustomerSummary:
    """Build the summary for one customer given the reference months."""
    customer_id = record.customer

    current = matrix.amount(customer_id, last_month)
    last_quarter = matrix.amount(customer_id, last_quarter_month)
    change = (current - last_quarter) / last_quarter * 100 if last_quarter else 0.0

    revenue_months = [m for m in matrix.axis if matrix.amount(customer_id, m) > 0]
    start = revenue_months[0] if revenue_months else NO_DATE
    if current > 0:
        end = STILL_ACTIVE
    else:
        end = revenue_months[-1] if revenue_months else NO_DATE

    return CustomerSummary(
        id=customer_id,
        customer=customer_id,
        current_mrr=current,
        last_quarter_mrr=last_quarter,
        arr=current * MONTHS_PER_YEAR,
        quarterly_change_pct=change,
        status=STATUS_ACTIVE if current > 0 else STATUS_CHURNED,
        start_date=start,
        end_date=end,
        ltv=sum(matrix.amount(customer_id, m) for m in matrix.axis),
        declared_start_date=record.start_date,
        declared_end_date=record.end_date,
    )


def build_customer_summaries(matrix: RevenueMatrix) -> list[CustomerSummary]:
    """One summary per customer, in matrix order.

    The quarter reference is the month three positions before the last;
    with fewer than four months it falls back to the last month.
    """
    if matrix.is_empty:
        return []

    axis = matrix.axis
    last_month = axis.last
    last_quarter_month = axis[-4] if len(axis) >= 4 else last_month

    return [
        summarize_customer(matrix, record, last_month, last_quarter_month)
        for record in matrix.customers
    ]

