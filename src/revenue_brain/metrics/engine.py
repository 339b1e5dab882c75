"""Revenue engine — run every metric pass over one matrix.

All passes are pure functions of the same immutable matrix; running the
engine twice on an unchanged matrix gives equal reports.  ``to_dict`` is
the one place field names are mapped to their serialized camelCase form.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from revenue_brain.ingestion.cell_audit import CellIssue, audit_matrix, summarize_issues
from revenue_brain.metrics.cohort_analysis import (
    POLICY_FIRST_REVENUE,
    Cohort,
    build_cohorts,
    compute_cohort_health,
    find_declining_cohorts,
    pivot_cohort_table,
)
from revenue_brain.metrics.customer_summary import CustomerSummary, build_customer_summaries
from revenue_brain.metrics.headline import HeadlineKPI, compute_headline_kpis
from revenue_brain.metrics.matrix import RevenueMatrix
from revenue_brain.metrics.monthly_metrics import MonthlyMetric, compute_monthly_metrics
from revenue_brain.metrics.quarterly_rollup import attach_quarterly_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevenueReport:
    """Everything the engine derives from one matrix."""

    months: tuple[str, ...]
    monthly: tuple[MonthlyMetric, ...]
    customers: tuple[CustomerSummary, ...]
    cohorts: tuple[Cohort, ...]
    headline: tuple[HeadlineKPI, ...]
    cohort_policy: str
    issues: tuple[CellIssue, ...] = field(default=())

    def to_dict(self) -> dict:
        return {
            "months": list(self.months),
            "cohortPolicy": self.cohort_policy,
            "monthly": [monthly_metric_to_dict(m) for m in self.monthly],
            "customers": [customer_summary_to_dict(c) for c in self.customers],
            "cohorts": [cohort_to_dict(c) for c in self.cohorts],
            "cohortHealth": compute_cohort_health(list(self.cohorts)),
            "cohortGrid": {
                "retentionRate": pivot_cohort_table(list(self.cohorts), "retention_rate"),
                "revenueRate": pivot_cohort_table(list(self.cohorts), "revenue_rate"),
            },
            "decliningCohorts": find_declining_cohorts(list(self.cohorts)),
            "headline": [headline_to_dict(k) for k in self.headline],
            "issues": {
                **summarize_issues(list(self.issues)),
                "cells": [
                    {
                        "customer": i.customer,
                        "month": i.month,
                        "rawValue": i.raw_value,
                        "reason": i.reason,
                        "amount": i.amount,
                    }
                    for i in self.issues
                ],
            },
        }


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def monthly_metric_to_dict(metric: MonthlyMetric) -> dict:
    """Quarterly keys appear only on quarter-end months."""
    out = {
        "date": metric.date,
        "mrr": metric.mrr,
        "arr": metric.arr,
        "netNewRevenue": metric.net_new_revenue,
        "growthRate": metric.growth_rate,
        "nrr": metric.nrr,
        "activeCustomers": metric.active_customers,
        "acv": metric.acv,
    }
    q = metric.quarterly
    if q is not None:
        out.update({
            "quarterlyMrr": q.quarterly_mrr,
            "quarterlyArr": q.quarterly_arr,
            "quarterlyGrowth": q.quarterly_growth,
            "quarterlyNrr": q.quarterly_nrr,
            "quarterlyNetNew": q.quarterly_net_new,
            "quarterlyAcv": q.quarterly_acv,
            "quarterlyActiveCustomers": q.quarterly_active_customers,
            "formattedQuarter": q.formatted_quarter,
        })
    return out


def customer_summary_to_dict(summary: CustomerSummary) -> dict:
    return {
        "id": summary.id,
        "customer": summary.customer,
        "startDate": summary.start_date,
        "endDate": summary.end_date,
        "currentMrr": summary.current_mrr,
        "lastQuarterMrr": summary.last_quarter_mrr,
        "arr": summary.arr,
        "quarterlyChangePct": summary.quarterly_change_pct,
        "status": summary.status,
        "ltv": summary.ltv,
        "declaredStartDate": summary.declared_start_date,
        "declaredEndDate": summary.declared_end_date,
    }


def cohort_to_dict(cohort: Cohort) -> dict:
    return {
        "cohort": cohort.cohort,
        "initialCustomers": cohort.size,
        "initialRevenue": cohort.initial_revenue,
        "members": list(cohort.members),
        "periods": [
            {
                "period": p.period,
                "month": p.month,
                "retainedCount": p.retained_count,
                "periodRevenue": p.period_revenue,
                "retentionRate": p.retention_rate,
                "revenueRate": p.revenue_rate,
            }
            for p in cohort.periods
        ],
    }


def headline_to_dict(kpi: HeadlineKPI) -> dict:
    return {
        "name": kpi.name,
        "value": kpi.value,
        "monthChange": kpi.month_change,
        "quarterChange": kpi.quarter_change,
        "yearChange": kpi.year_change,
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def analyze_revenue(matrix: RevenueMatrix, cohort_policy: str = POLICY_FIRST_REVENUE) -> RevenueReport:
    """Compute monthly + quarterly KPIs, customer summaries, cohorts and headline KPIs.

    Raises:
        ValueError: if *cohort_policy* is unknown.  Data problems never raise;
            unreadable cells count as zero and are listed in ``issues``.
    """
    started = time.monotonic()

    cohorts = build_cohorts(matrix, cohort_policy)
    monthly = attach_quarterly_metrics(matrix, compute_monthly_metrics(matrix))
    customers = build_customer_summaries(matrix)
    headline = compute_headline_kpis(matrix, monthly)
    issues = audit_matrix(matrix)

    if issues:
        logger.warning(
            "%d revenue cells read as suspicious (%s)",
            len(issues), summarize_issues(issues)["by_reason"],
        )
    logger.info(
        "Analyzed %d customers over %d months: %d cohorts (%s) in %.1f ms",
        len(matrix), len(matrix.axis), len(cohorts), cohort_policy,
        (time.monotonic() - started) * 1000,
    )

    return RevenueReport(
        months=tuple(matrix.axis),
        monthly=tuple(monthly),
        customers=tuple(customers),
        cohorts=tuple(cohorts),
        headline=tuple(headline),
        cohort_policy=cohort_policy,
        issues=tuple(issues),
    )
