"""Quarterly rollup — quarter-end snapshots derived from the monthly series.

Quarter values are the quarter's last month (a snapshot, not a sum).  The
comparison baseline is the record three positions earlier on the axis.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from revenue_brain.metrics.matrix import RevenueMatrix, is_quarter_end, quarter_label
from revenue_brain.metrics.monthly_metrics import (
    MONTHS_PER_YEAR,
    MonthlyMetric,
    QuarterlyMetric,
    pct_change,
    reference_cohort_nrr,
)

logger = logging.getLogger(__name__)

QUARTER_LOOKBACK = 3


def compute_quarterly_metric(
    matrix: RevenueMatrix,
    metrics: list[MonthlyMetric],
    i: int,
) -> QuarterlyMetric | None:
    """Quarter-end snapshot for ``metrics[i]``, or None if it is not a quarter end.

    A missing baseline counts as 0 MRR for growth and net new.  Quarterly
    NRR needs an actual reference month and is None without one.
    """
    metric = metrics[i]
    if not is_quarter_end(metric.date):
        return None

    j = i - QUARTER_LOOKBACK
    baseline = metrics[j] if j >= 0 else None
    prev_mrr = baseline.mrr if baseline is not None else 0.0

    nrr = None
    if baseline is not None:
        nrr = reference_cohort_nrr(matrix, metric.date, baseline.date)

    return QuarterlyMetric(
        quarterly_mrr=metric.mrr,
        quarterly_arr=metric.arr,
        quarterly_growth=pct_change(metric.mrr, prev_mrr),
        quarterly_nrr=nrr,
        quarterly_net_new=(metric.mrr - prev_mrr) * MONTHS_PER_YEAR,
        quarterly_acv=metric.acv,
        quarterly_active_customers=metric.active_customers,
        formatted_quarter=quarter_label(metric.date),
    )


def attach_quarterly_metrics(
    matrix: RevenueMatrix,
    metrics: list[MonthlyMetric],
) -> list[MonthlyMetric]:
    """Return a copy of *metrics* with quarterly fields set on quarter-end months."""
    result = []
    for i, metric in enumerate(metrics):
        quarterly = compute_quarterly_metric(matrix, metrics, i)
        result.append(replace(metric, quarterly=quarterly) if quarterly else metric)

    logger.debug(
        "Attached quarterly metrics to %d of %d months",
        sum(1 for m in result if m.quarterly), len(result),
    )
    return result


def quarterly_series(metrics: list[MonthlyMetric]) -> list[MonthlyMetric]:
    """Only the months carrying quarterly fields, in order."""
    return [m for m in metrics if m.quarterly is not None]
