"""Headline KPIs — latest-month values with month, quarter and year changes.

Changes compare the latest monthly record with the records 1, 3 and 12
positions earlier.  A change whose baseline is missing or zero is None.
"""

from __future__ import annotations

from dataclasses import dataclass

from revenue_brain.metrics.matrix import RevenueMatrix
from revenue_brain.metrics.monthly_metrics import MonthlyMetric, reference_cohort_nrr

QUARTER_BACK = 3
YEAR_BACK = 12


@dataclass(frozen=True)
class HeadlineKPI:
    """One KPI card."""

    name: str
    value: float
    month_change: float | None
    quarter_change: float | None
    year_change: float | None


def _ratio_change(current: float | None, baseline: float | None) -> float | None:
    if current is None or not baseline:
        return None
    return (current / baseline - 1) * 100


def _at(metrics: list[MonthlyMetric], back: int) -> MonthlyMetric | None:
    i = len(metrics) - 1 - back
    return metrics[i] if i >= 0 else None


def _value_kpi(name: str, metrics: list[MonthlyMetric], getter) -> HeadlineKPI:
    latest = metrics[-1]
    prev_month = _at(metrics, 1)
    prev_quarter = _at(metrics, QUARTER_BACK)
    prev_year = _at(metrics, YEAR_BACK)
    current = getter(latest)
    return HeadlineKPI(
        name=name,
        value=current if current is not None else 0.0,
        month_change=_ratio_change(current, getter(prev_month)) if prev_month else None,
        quarter_change=_ratio_change(current, getter(prev_quarter)) if prev_quarter else None,
        year_change=_ratio_change(current, getter(prev_year)) if prev_year else None,
    )


def _nrr_kpi(matrix: RevenueMatrix, metrics: list[MonthlyMetric]) -> HeadlineKPI:
    latest = metrics[-1]
    prev_quarter = _at(metrics, QUARTER_BACK)
    prev_year = _at(metrics, YEAR_BACK)

    quarter = reference_cohort_nrr(matrix, latest.date, prev_quarter.date) if prev_quarter else None
    year = reference_cohort_nrr(matrix, latest.date, prev_year.date) if prev_year else None

    return HeadlineKPI(
        name="Net Revenue Retention",
        value=latest.nrr if latest.nrr is not None else 100.0,
        month_change=latest.nrr,
        quarter_change=quarter,
        year_change=year,
    )


def compute_headline_kpis(matrix: RevenueMatrix, metrics: list[MonthlyMetric]) -> list[HeadlineKPI]:
    """KPI cards for the latest month of *metrics* (empty if there are none).

    Value KPIs change as ratios against 1, 3 and 12 months back; at a
    quarter end the MRR quarter change equals the quarterly growth.  NRR
    changes are retention ratios, not differences: monthly, quarterly
    (3 back) and annual (12 back) NRR over the respective reference cohorts.
    """
    if not metrics:
        return []

    return [
        _value_kpi("MRR", metrics, lambda m: m.mrr),
        _value_kpi("ARR", metrics, lambda m: m.arr),
        _value_kpi("Active Customers", metrics, lambda m: m.active_customers),
        _value_kpi("ACV", metrics, lambda m: m.acv),
        _value_kpi("Net New Revenue", metrics, lambda m: m.net_new_revenue),
        _nrr_kpi(matrix, metrics),
    ]
