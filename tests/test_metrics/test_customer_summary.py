"""Tests for customer summaries."""

import pytest

from revenue_brain.metrics.customer_summary import (
    STATUS_ACTIVE,
    STATUS_CHURNED,
    build_customer_summaries,
)
from revenue_brain.metrics.matrix import CustomerRecord, RevenueMatrix, add_months


def _matrix(series: dict[str, list], start: str = "2024-01", **dates) -> RevenueMatrix:
    records = []
    for name, values in series.items():
        cells = {add_months(start, i): v for i, v in enumerate(values)}
        start_date, end_date = dates.get(name, (None, None))
        records.append(CustomerRecord(
            customer=name, cells=cells, start_date=start_date, end_date=end_date,
        ))
    return RevenueMatrix(records)


@pytest.fixture
def summaries():
    m = _matrix({
        "A": [100, 100, 150, 150, 200],
        "B": [0, 50, 50, 0, 0],
        "C": [0, 0, 0, 0, 0],
    })
    return {s.customer: s for s in build_customer_summaries(m)}


class TestBuildCustomerSummaries:
    def test_active_customer(self, summaries):
        a = summaries["A"]
        assert a.id == "A"
        assert a.current_mrr == 200
        assert a.last_quarter_mrr == 100  # 2024-02, three positions before the last
        assert a.arr == 2400
        assert a.quarterly_change_pct == pytest.approx(100.0)
        assert a.status == STATUS_ACTIVE
        assert a.start_date == "2024-01"
        assert a.end_date == "--"
        assert a.ltv == 700

    def test_churned_customer(self, summaries):
        b = summaries["B"]
        assert b.status == STATUS_CHURNED
        assert b.current_mrr == 0
        assert b.start_date == "2024-02"
        assert b.end_date == "2024-03"
        assert b.quarterly_change_pct == pytest.approx(-100.0)
        assert b.ltv == 100

    def test_customer_without_revenue(self, summaries):
        c = summaries["C"]
        assert c.start_date == "N/A"
        assert c.end_date == "N/A"
        assert c.quarterly_change_pct == 0
        assert c.status == STATUS_CHURNED

    def test_matrix_order_preserved(self):
        m = _matrix({"Z": [1], "A": [1]})
        assert [s.customer for s in build_customer_summaries(m)] == ["Z", "A"]

    def test_short_axis_falls_back_to_last_month(self):
        m = _matrix({"A": [100, 200, 300]})
        s = build_customer_summaries(m)[0]
        assert s.last_quarter_mrr == 300
        assert s.quarterly_change_pct == 0

    def test_declared_dates_carried(self):
        m = _matrix({"A": [0, 10]}, A=("2023-06-15", "N/A"))
        s = build_customer_summaries(m)[0]
        assert s.declared_start_date == "2023-06-15"
        assert s.declared_end_date == "N/A"
        assert s.start_date == "2024-02"  # inferred from revenue

    def test_empty(self):
        assert build_customer_summaries(RevenueMatrix([])) == []
