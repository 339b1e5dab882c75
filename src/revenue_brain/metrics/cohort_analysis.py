"""Cohort analysis — acquisition-month cohorts tracked over relative periods.

Pure functions for grouping customers by the month they were acquired and
tracking how many stay active (retention) and how their combined revenue
moves against the cohort's initial revenue (revenue retention).

Two acquisition policies exist; one is chosen per call, never mixed:

- ``first_revenue`` (default): the first axis month with revenue > 0.
  Customers that never had revenue belong to no cohort.
- ``start_date``: the month of the declared start date.  Customers without
  a parseable start date belong to no cohort.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from revenue_brain.metrics.matrix import (
    CustomerRecord,
    RevenueMatrix,
    add_months,
    is_month_key,
    months_between,
)

POLICY_FIRST_REVENUE = "first_revenue"
POLICY_START_DATE = "start_date"
COHORT_POLICIES = (POLICY_FIRST_REVENUE, POLICY_START_DATE)

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
)


@dataclass(frozen=True)
class CohortPeriod:
    """One relative period of a cohort (0 = acquisition month)."""

    period: int
    month: str
    retained_count: int
    period_revenue: float
    retention_rate: float  # retained / cohort size * 100
    revenue_rate: float  # period revenue / initial revenue * 100 (100 at period 0)


@dataclass(frozen=True)
class Cohort:
    """Customers sharing an acquisition month."""

    cohort: str
    members: tuple[str, ...]
    initial_revenue: float
    periods: tuple[CohortPeriod, ...]

    @property
    def size(self) -> int:
        return len(self.members)


# ---------------------------------------------------------------------------
# Acquisition month
# ---------------------------------------------------------------------------


def _start_date_month(value) -> str | None:
    """Month key of a declared start date, or None if it cannot be read."""
    if value is None:
        return None
    s = str(value).strip()
    if not s or s == "N/A":
        return None
    if is_month_key(s):
        return s
    for fmt in _DATE_FORMATS:
        try:
            dt = datetime.strptime(s, fmt)
        except ValueError:
            continue
        return f"{dt.year:04d}-{dt.month:02d}"
    return None


def acquisition_month(
    matrix: RevenueMatrix,
    record: CustomerRecord,
    policy: str = POLICY_FIRST_REVENUE,
) -> str | None:
    """Month a customer joins its cohort under *policy*, or None for no cohort."""
    if policy == POLICY_FIRST_REVENUE:
        for month in matrix.axis:
            if matrix.amount(record.customer, month) > 0:
                return month
        return None
    if policy == POLICY_START_DATE:
        return _start_date_month(record.start_date)
    raise ValueError(f"Unknown cohort policy {policy!r}; expected one of {COHORT_POLICIES}")


def group_by_acquisition(
    matrix: RevenueMatrix,
    policy: str = POLICY_FIRST_REVENUE,
) -> dict[str, list[str]]:
    """Map cohort month -> member customer ids (matrix order), months ascending."""
    if policy not in COHORT_POLICIES:
        raise ValueError(f"Unknown cohort policy {policy!r}; expected one of {COHORT_POLICIES}")

    groups: dict[str, list[str]] = {}
    for record in matrix.customers:
        month = acquisition_month(matrix, record, policy)
        if month is None:
            continue
        groups.setdefault(month, []).append(record.customer)
    return dict(sorted(groups.items()))


# ---------------------------------------------------------------------------
# Cohort construction
# ---------------------------------------------------------------------------


def build_cohort(matrix: RevenueMatrix, cohort_month: str, members: list[str]) -> Cohort:
    """Track one cohort from its month to the latest axis month.

    A cohort that starts after the latest axis month has no periods and
    zero initial revenue.
    """
    latest = matrix.axis.last
    span = months_between(cohort_month, latest) if latest else -1
    if span < 0:
        return Cohort(cohort=cohort_month, members=tuple(members), initial_revenue=0.0, periods=())

    initial = matrix.month_total(cohort_month, members)
    size = len(members)

    periods = []
    for p in range(span + 1):
        month = add_months(cohort_month, p)
        retained = sum(1 for cid in members if matrix.amount(cid, month) > 0)
        revenue = matrix.month_total(month, members)
        if p == 0:
            revenue_rate = 100.0
        else:
            revenue_rate = revenue / initial * 100 if initial else 0.0
        periods.append(CohortPeriod(
            period=p,
            month=month,
            retained_count=retained,
            period_revenue=revenue,
            retention_rate=retained / size * 100 if size else 0.0,
            revenue_rate=revenue_rate,
        ))

    return Cohort(
        cohort=cohort_month,
        members=tuple(members),
        initial_revenue=initial,
        periods=tuple(periods),
    )


def build_cohorts(matrix: RevenueMatrix, policy: str = POLICY_FIRST_REVENUE) -> list[Cohort]:
    """Build every cohort under *policy*, oldest cohort first.

    Raises:
        ValueError: if *policy* is not a known cohort policy.
    """
    groups = group_by_acquisition(matrix, policy)
    if matrix.is_empty:
        return []
    return [build_cohort(matrix, month, members) for month, members in groups.items()]


# ---------------------------------------------------------------------------
# Views over built cohorts
# ---------------------------------------------------------------------------


def pivot_cohort_table(cohorts: list[Cohort], metric: str = "retention_rate") -> list[dict]:
    """Convert cohorts into a grid, newest cohort first.

    Returns list of dicts: [{"cohort": "2024-03", "size": 4, "period_0": 100.0, ...}]
    with one ``period_<n>`` key per relative period up to the longest cohort;
    periods a cohort has not reached yet are None.
    """
    if not cohorts:
        return []
    if metric not in ("retention_rate", "revenue_rate", "retained_count", "period_revenue"):
        raise ValueError(f"Unknown cohort metric {metric!r}")

    width = max(len(c.periods) for c in cohorts)
    table = []
    for cohort in sorted(cohorts, key=lambda c: c.cohort, reverse=True):
        row: dict = {"cohort": cohort.cohort, "size": cohort.size}
        for p in range(width):
            row[f"period_{p}"] = getattr(cohort.periods[p], metric) if p < len(cohort.periods) else None
        table.append(row)
    return table


def compute_cohort_health(cohorts: list[Cohort]) -> dict:
    """Size-weighted retention across cohorts at each relative period.

    Returns dict with total_cohorts, total_customers, and
    avg_retention_by_period / avg_revenue_rate_by_period lists; an empty
    input gives {"status": "no_data"}.
    """
    populated = [c for c in cohorts if c.periods and c.size]
    if not populated:
        return {"status": "no_data"}

    width = max(len(c.periods) for c in populated)
    retention: list[float] = []
    revenue_rates: list[float] = []
    for p in range(width):
        reached = [c for c in populated if p < len(c.periods)]
        weight = sum(c.size for c in reached)
        retention.append(round(
            sum(c.periods[p].retention_rate * c.size for c in reached) / weight, 1,
        ))
        revenue_rates.append(round(
            sum(c.periods[p].revenue_rate * c.size for c in reached) / weight, 1,
        ))

    return {
        "total_cohorts": len(cohorts),
        "total_customers": sum(c.size for c in cohorts),
        "avg_retention_by_period": retention,
        "avg_revenue_rate_by_period": revenue_rates,
    }


def find_declining_cohorts(cohorts: list[Cohort], threshold: float = 80.0) -> list[dict]:
    """Find cohorts whose latest revenue rate is below *threshold* percent.

    Returns:
        List of {cohort, revenue_rate, retention_rate, periods} dicts,
        worst first.
    """
    declining = []
    for cohort in cohorts:
        if len(cohort.periods) < 2:
            continue
        latest = cohort.periods[-1]
        if latest.revenue_rate < threshold:
            declining.append({
                "cohort": cohort.cohort,
                "revenue_rate": round(latest.revenue_rate, 1),
                "retention_rate": round(latest.retention_rate, 1),
                "periods": len(cohort.periods),
            })

    declining.sort(key=lambda d: d["revenue_rate"])
    return declining
