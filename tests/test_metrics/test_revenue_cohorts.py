"""Tests for acquisition-month cohort analysis."""

import pytest

from revenue_brain.metrics.cohort_analysis import (
    POLICY_FIRST_REVENUE,
    POLICY_START_DATE,
    Cohort,
    acquisition_month,
    build_cohort,
    build_cohorts,
    compute_cohort_health,
    find_declining_cohorts,
    group_by_acquisition,
    pivot_cohort_table,
)
from revenue_brain.metrics.matrix import CustomerRecord, RevenueMatrix, add_months


def _matrix(series: dict[str, list], start: str = "2024-01", starts: dict | None = None) -> RevenueMatrix:
    starts = starts or {}
    records = []
    for name, values in series.items():
        cells = {add_months(start, i): v for i, v in enumerate(values)}
        records.append(CustomerRecord(customer=name, cells=cells, start_date=starts.get(name)))
    return RevenueMatrix(records)


@pytest.fixture
def matrix():
    return _matrix({
        "A": [100, 100, 0, 0],
        "B": [200, 300, 300, 300],
        "C": [0, 50, 50, 100],
        "D": [0, 0, 0, 0],
    })


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


class TestGrouping:
    def test_first_revenue_policy(self, matrix):
        groups = group_by_acquisition(matrix)
        assert groups == {"2024-01": ["A", "B"], "2024-02": ["C"]}

    def test_customer_without_revenue_has_no_cohort(self, matrix):
        record = next(c for c in matrix.customers if c.customer == "D")
        assert acquisition_month(matrix, record) is None

    def test_start_date_policy(self):
        m = _matrix(
            {"A": [0, 100], "B": [100, 100], "C": [100, 0]},
            starts={"A": "2024-01-15", "B": "12/03/2023", "C": "N/A"},
        )
        groups = group_by_acquisition(m, POLICY_START_DATE)
        assert groups == {"2023-12": ["B"], "2024-01": ["A"]}

    def test_policies_differ_on_revenue_gap(self):
        m = _matrix({"A": [0, 100]}, starts={"A": "2024-01-01"})
        assert list(group_by_acquisition(m, POLICY_FIRST_REVENUE)) == ["2024-02"]
        assert list(group_by_acquisition(m, POLICY_START_DATE)) == ["2024-01"]

    def test_unknown_policy(self, matrix):
        with pytest.raises(ValueError, match="Unknown cohort policy"):
            build_cohorts(matrix, "signup")


# ---------------------------------------------------------------------------
# Cohort periods
# ---------------------------------------------------------------------------


class TestBuildCohorts:
    def test_cohorts_oldest_first(self, matrix):
        cohorts = build_cohorts(matrix)
        assert [c.cohort for c in cohorts] == ["2024-01", "2024-02"]

    def test_initial_revenue_and_size(self, matrix):
        jan = build_cohorts(matrix)[0]
        assert jan.size == 2
        assert jan.initial_revenue == 300

    def test_periods_run_to_latest_month(self, matrix):
        jan, feb = build_cohorts(matrix)
        assert len(jan.periods) == 4
        assert len(feb.periods) == 3
        assert [p.month for p in feb.periods] == ["2024-02", "2024-03", "2024-04"]

    def test_retention(self, matrix):
        jan = build_cohorts(matrix)[0]
        assert [p.retained_count for p in jan.periods] == [2, 2, 1, 1]
        assert [p.retention_rate for p in jan.periods] == [100.0, 100.0, 50.0, 50.0]

    def test_revenue_rate(self, matrix):
        jan = build_cohorts(matrix)[0]
        assert jan.periods[0].revenue_rate == 100.0
        assert jan.periods[1].period_revenue == 400
        assert jan.periods[1].revenue_rate == pytest.approx(400 / 300 * 100)
        assert jan.periods[2].revenue_rate == pytest.approx(100.0)

    def test_period_zero_is_always_100(self):
        m = _matrix({"A": [0, 0]}, starts={"A": "2024-01-01"})
        cohort = build_cohorts(m, POLICY_START_DATE)[0]
        assert cohort.initial_revenue == 0
        assert cohort.periods[0].revenue_rate == 100.0
        assert cohort.periods[1].revenue_rate == 0.0
        assert cohort.periods[0].retention_rate == 0.0

    def test_future_cohort_placeholder(self):
        m = _matrix({"A": [100, 100, 100]}, starts={"A": "2025-06-01"})
        cohort = build_cohorts(m, POLICY_START_DATE)[0]
        assert cohort.cohort == "2025-06"
        assert cohort.periods == ()
        assert cohort.initial_revenue == 0
        assert cohort.size == 1

    def test_cohort_before_axis(self):
        m = _matrix({"A": [100, 100]}, starts={"A": "2023-11-01"})
        cohort = build_cohorts(m, POLICY_START_DATE)[0]
        assert len(cohort.periods) == 4
        assert cohort.initial_revenue == 0
        assert cohort.periods[2].retained_count == 1

    def test_build_single_cohort(self, matrix):
        cohort = build_cohort(matrix, "2024-03", ["B"])
        assert cohort.initial_revenue == 300
        assert len(cohort.periods) == 2

    def test_empty_matrix(self):
        assert build_cohorts(RevenueMatrix([])) == []


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class TestPivotCohortTable:
    def test_grid_newest_first(self, matrix):
        table = pivot_cohort_table(build_cohorts(matrix))
        assert [row["cohort"] for row in table] == ["2024-02", "2024-01"]
        assert table[0]["period_3"] is None
        assert table[1]["period_2"] == 50.0
        assert table[1]["size"] == 2

    def test_revenue_metric(self, matrix):
        table = pivot_cohort_table(build_cohorts(matrix), "revenue_rate")
        assert table[1]["period_0"] == 100.0

    def test_unknown_metric(self, matrix):
        with pytest.raises(ValueError):
            pivot_cohort_table(build_cohorts(matrix), "ltv")

    def test_empty(self):
        assert pivot_cohort_table([]) == []


class TestCohortHealth:
    def test_weighted_retention(self, matrix):
        health = compute_cohort_health(build_cohorts(matrix))
        assert health["total_cohorts"] == 2
        assert health["total_customers"] == 3
        assert health["avg_retention_by_period"][0] == 100.0
        # period 2: jan 50% (size 2), feb 100% (size 1)
        assert health["avg_retention_by_period"][2] == pytest.approx(66.7)

    def test_no_data(self):
        assert compute_cohort_health([]) == {"status": "no_data"}


class TestFindDecliningCohorts:
    def test_flags_low_revenue_rate(self):
        cohorts = build_cohorts(_matrix({"A": [100, 50, 40], "B": [0, 100, 100]}))
        declining = find_declining_cohorts(cohorts)
        assert [d["cohort"] for d in declining] == ["2024-01"]
        assert declining[0]["revenue_rate"] == 40.0

    def test_single_period_ignored(self):
        cohort = Cohort(cohort="2024-01", members=("A",), initial_revenue=0.0, periods=())
        assert find_declining_cohorts([cohort]) == []
