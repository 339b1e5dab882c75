"""Monthly metrics — one KPI record per month of the period axis.

Pure functions over a :class:`RevenueMatrix`.  Comparisons use positional
offsets on the period axis: the previous month is ``i - 1`` and the growth
baseline is ``i - 3`` regardless of calendar-quarter alignment.  Metrics
with no comparison period are ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass

from revenue_brain.metrics.matrix import RevenueMatrix

MONTHS_PER_YEAR = 12
GROWTH_LOOKBACK = 3


@dataclass(frozen=True)
class QuarterlyMetric:
    """Quarter-end snapshot attached to the monthly record of a quarter's last month."""

    quarterly_mrr: float
    quarterly_arr: float
    quarterly_growth: float
    quarterly_nrr: float | None
    quarterly_net_new: float
    quarterly_acv: float
    quarterly_active_customers: int
    formatted_quarter: str


@dataclass(frozen=True)
class MonthlyMetric:
    """KPIs for one month."""

    date: str
    mrr: float
    arr: float
    net_new_revenue: float | None  # None for the first month
    growth_rate: float | None  # None for the first three months
    nrr: float | None  # None for the first month
    active_customers: int
    acv: float
    quarterly: QuarterlyMetric | None = None


# ---------------------------------------------------------------------------
# Shared aggregates
# ---------------------------------------------------------------------------


def reference_cohort_nrr(matrix: RevenueMatrix, current: str, reference: str) -> float:
    """Net revenue retention of the customers active in *reference*.

    Only customers with revenue > 0 in the reference month count, on both
    sides of the ratio: new customers never raise NRR and churned customers
    contribute 0 to the current side.  Returns 100 when the reference cohort
    has no revenue.
    """
    cohort = matrix.active_in(reference)
    previous = matrix.month_total(reference, cohort)
    if not previous:
        return 100.0
    return matrix.month_total(current, cohort) / previous * 100


def expansion_revenue(matrix: RevenueMatrix, current: str, previous: str) -> float:
    """Annualized sum of positive per-customer MRR changes (contraction ignored)."""
    total = 0.0
    for cid in matrix.customer_ids:
        delta = matrix.amount(cid, current) - matrix.amount(cid, previous)
        if delta > 0:
            total += delta
    return total * MONTHS_PER_YEAR


def pct_change(current: float, baseline: float) -> float:
    """Percentage change from *baseline*; 0 when the baseline is 0."""
    if not baseline:
        return 0.0
    return (current - baseline) / baseline * 100


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


def compute_monthly_metric(matrix: RevenueMatrix, i: int) -> MonthlyMetric:
    """Compute the KPI record for position *i* of the period axis."""
    axis = matrix.axis
    month = axis[i]

    mrr = matrix.month_total(month)
    arr = mrr * MONTHS_PER_YEAR

    previous = axis.offset(i, -1)
    net_new = None
    nrr = None
    if previous is not None:
        net_new = expansion_revenue(matrix, month, previous)
        nrr = reference_cohort_nrr(matrix, month, previous)

    growth = None
    baseline_month = axis.offset(i, -GROWTH_LOOKBACK)
    if baseline_month is not None:
        prev_arr = matrix.month_total(baseline_month) * MONTHS_PER_YEAR
        growth = pct_change(arr, prev_arr)

    active = len(matrix.active_in(month))
    acv = arr / active if active else 0.0

    return MonthlyMetric(
        date=month,
        mrr=mrr,
        arr=arr,
        net_new_revenue=net_new,
        growth_rate=growth,
        nrr=nrr,
        active_customers=active,
        acv=acv,
    )


def compute_monthly_metrics(matrix: RevenueMatrix) -> list[MonthlyMetric]:
    """One :class:`MonthlyMetric` per period-axis month, in axis order."""
    if matrix.is_empty:
        return []
    return [compute_monthly_metric(matrix, i) for i in range(len(matrix.axis))]
