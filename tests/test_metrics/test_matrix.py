"""Tests for the revenue matrix model and month arithmetic."""

import pytest

from revenue_brain.metrics.matrix import (
    CustomerRecord,
    MatrixValidationError,
    PeriodAxis,
    RevenueMatrix,
    add_months,
    is_month_key,
    is_quarter_end,
    months_between,
    quarter_label,
    quarter_of,
)


def _record(name, cells, **kwargs):
    return CustomerRecord(customer=name, cells=cells, **kwargs)


# ---------------------------------------------------------------------------
# Month arithmetic
# ---------------------------------------------------------------------------


class TestMonthArithmetic:
    def test_add_months_within_year(self):
        assert add_months("2024-01", 2) == "2024-03"

    def test_add_months_across_year(self):
        assert add_months("2024-11", 3) == "2025-02"
        assert add_months("2024-01", -1) == "2023-12"

    def test_months_between(self):
        assert months_between("2023-11", "2024-02") == 3
        assert months_between("2024-02", "2023-11") == -3
        assert months_between("2024-05", "2024-05") == 0

    def test_quarters(self):
        assert quarter_of("2024-01") == 1
        assert quarter_of("2024-06") == 2
        assert quarter_of("2024-12") == 4
        assert is_quarter_end("2024-09")
        assert not is_quarter_end("2024-08")

    def test_quarter_label(self):
        assert quarter_label("2024-03") == "Q1 '24"
        assert quarter_label("2025-12") == "Q4 '25"

    def test_is_month_key(self):
        assert is_month_key("2024-01")
        assert not is_month_key("2024-13")
        assert not is_month_key("2024-1")
        assert not is_month_key("Customer")
        assert not is_month_key(202401)


# ---------------------------------------------------------------------------
# PeriodAxis
# ---------------------------------------------------------------------------


class TestPeriodAxis:
    def test_sequence_behaviour(self):
        axis = PeriodAxis(["2024-01", "2024-02", "2024-03"])
        assert len(axis) == 3
        assert axis[0] == "2024-01"
        assert axis[-1] == "2024-03"
        assert list(axis) == ["2024-01", "2024-02", "2024-03"]
        assert "2024-02" in axis

    def test_offset(self):
        axis = PeriodAxis(["2024-01", "2024-02", "2024-03"])
        assert axis.offset(2, -1) == "2024-02"
        assert axis.offset(2, -2) == "2024-01"
        assert axis.offset(2, -3) is None
        assert axis.offset(0, 5) is None

    def test_index_of(self):
        axis = PeriodAxis(["2024-01", "2024-02"])
        assert axis.index_of("2024-02") == 1
        assert axis.index_of("2023-12") is None

    def test_empty(self):
        axis = PeriodAxis([])
        assert axis.first is None
        assert axis.last is None


# ---------------------------------------------------------------------------
# RevenueMatrix
# ---------------------------------------------------------------------------


class TestRevenueMatrix:
    def test_axis_sorted(self):
        m = RevenueMatrix([_record("A", {"2024-02": 1, "2024-01": 2})])
        assert list(m.axis) == ["2024-01", "2024-02"]

    def test_amounts_normalized_once(self):
        m = RevenueMatrix([_record("A", {"2024-01": "$1,000", "2024-02": "N/A"})])
        assert m.amount("A", "2024-01") == 1000
        assert m.amount("A", "2024-02") == 0

    def test_off_axis_reads_zero(self):
        m = RevenueMatrix([_record("A", {"2024-01": 5})])
        assert m.amount("A", "2023-12") == 0
        assert m.amount("A", None) == 0
        assert m.amount("missing", "2024-01") == 0

    def test_month_total_and_active(self):
        m = RevenueMatrix([
            _record("A", {"2024-01": 100}),
            _record("B", {"2024-01": 0}),
            _record("C", {"2024-01": "50"}),
        ])
        assert m.month_total("2024-01") == 150
        assert m.month_total("2024-01", ["A", "B"]) == 100
        assert m.active_in("2024-01") == ["A", "C"]

    def test_cells_are_read_only(self):
        record = _record("A", {"2024-01": 1})
        with pytest.raises(TypeError):
            record.cells["2024-01"] = 2  # type: ignore[index]

    def test_source_dict_changes_do_not_leak(self):
        cells = {"2024-01": 1}
        record = _record("A", cells)
        cells["2024-01"] = 99
        assert record.cells["2024-01"] == 1

    def test_empty_matrix(self):
        m = RevenueMatrix([])
        assert m.is_empty
        assert len(m.axis) == 0

    def test_customers_without_months(self):
        m = RevenueMatrix([_record("A", {})])
        assert m.is_empty


class TestRevenueMatrixValidation:
    def test_duplicate_customer(self):
        with pytest.raises(MatrixValidationError, match="Duplicate"):
            RevenueMatrix([_record("A", {"2024-01": 1}), _record("A", {"2024-01": 2})])

    def test_empty_customer(self):
        with pytest.raises(MatrixValidationError):
            RevenueMatrix([_record("  ", {"2024-01": 1})])

    def test_malformed_month_key(self):
        with pytest.raises(MatrixValidationError, match="malformed"):
            RevenueMatrix([_record("A", {"2024-13": 1})])

    def test_differing_month_sets(self):
        with pytest.raises(MatrixValidationError, match="different month set"):
            RevenueMatrix([
                _record("A", {"2024-01": 1, "2024-02": 1}),
                _record("B", {"2024-01": 1}),
            ])

    def test_gap_in_axis(self):
        with pytest.raises(MatrixValidationError, match="not contiguous"):
            RevenueMatrix([_record("A", {"2024-01": 1, "2024-03": 1})])

    def test_year_boundary_is_contiguous(self):
        m = RevenueMatrix([_record("A", {"2023-12": 1, "2024-01": 1})])
        assert list(m.axis) == ["2023-12", "2024-01"]

    def test_is_value_error(self):
        assert issubclass(MatrixValidationError, ValueError)
