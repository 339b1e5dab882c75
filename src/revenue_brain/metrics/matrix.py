"""Revenue matrix — customers x calendar months, validated on construction.

The matrix is the single input to every metric pass.  Construction checks the
shape the period-offset arithmetic relies on (well-formed ``YYYY-MM`` keys,
the same key set on every record, no gaps in the month sequence) and
normalizes every cell exactly once, so all downstream passes read identical
amounts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Sequence

from revenue_brain.ingestion.amount_normalizer import normalize_amount

MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class MatrixValidationError(ValueError):
    """Raised when a revenue matrix violates its shape invariants."""


# ---------------------------------------------------------------------------
# Month key arithmetic
# ---------------------------------------------------------------------------


def is_month_key(value: Any) -> bool:
    return isinstance(value, str) and bool(MONTH_KEY_RE.match(value))


def _split(key: str) -> tuple[int, int]:
    year, month = key.split("-")
    return int(year), int(month)


def add_months(key: str, n: int) -> str:
    """Shift a ``YYYY-MM`` key by *n* calendar months."""
    year, month = _split(key)
    total = year * 12 + (month - 1) + n
    return f"{total // 12:04d}-{total % 12 + 1:02d}"


def months_between(start: str, end: str) -> int:
    """Number of calendar months from *start* to *end* (negative if end is earlier)."""
    y1, m1 = _split(start)
    y2, m2 = _split(end)
    return (y2 - y1) * 12 + (m2 - m1)


def month_of_year(key: str) -> int:
    return _split(key)[1]


def quarter_of(key: str) -> int:
    """Calendar quarter (1-4) a month key falls in."""
    return (month_of_year(key) - 1) // 3 + 1


def is_quarter_end(key: str) -> bool:
    return month_of_year(key) % 3 == 0


def quarter_label(key: str) -> str:
    """Label like ``Q1 '24`` for the quarter containing *key*."""
    year, _ = _split(key)
    return f"Q{quarter_of(key)} '{str(year)[-2:]}"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomerRecord:
    """One customer row: identity, optional declared dates, raw month cells."""

    customer: str
    cells: Mapping[str, Any] = field(hash=False)
    start_date: str | None = None
    end_date: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "cells", MappingProxyType(dict(self.cells)))

    @property
    def month_keys(self) -> frozenset[str]:
        return frozenset(self.cells)


class PeriodAxis(Sequence[str]):
    """Ordered, contiguous sequence of month keys shared by the whole matrix.

    Period offsets (previous month, three months back, a year back) are
    positional: ``offset(i, -3)`` is the entry three places before *i*.
    """

    __slots__ = ("_months", "_index")

    def __init__(self, months: Sequence[str]) -> None:
        self._months = tuple(months)
        self._index = {m: i for i, m in enumerate(self._months)}

    def __getitem__(self, i):  # type: ignore[override]
        return self._months[i]

    def __len__(self) -> int:
        return len(self._months)

    def __iter__(self) -> Iterator[str]:
        return iter(self._months)

    def __contains__(self, month: object) -> bool:
        return month in self._index

    def __repr__(self) -> str:
        return f"PeriodAxis({list(self._months)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PeriodAxis):
            return self._months == other._months
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._months)

    def index_of(self, month: str) -> int | None:
        return self._index.get(month)

    def offset(self, i: int, n: int) -> str | None:
        """Month at position ``i + n``, or None when it falls off the axis."""
        j = i + n
        if 0 <= j < len(self._months):
            return self._months[j]
        return None

    @property
    def first(self) -> str | None:
        return self._months[0] if self._months else None

    @property
    def last(self) -> str | None:
        return self._months[-1] if self._months else None


class RevenueMatrix:
    """Validated customers x months revenue matrix.

    Raises:
        MatrixValidationError: on duplicate/empty customer ids, malformed
            month keys, records with differing month sets, or gaps between
            consecutive months.
    """

    __slots__ = ("_customers", "_axis", "_amounts")

    def __init__(self, customers: Sequence[CustomerRecord]) -> None:
        self._customers = tuple(customers)
        self._axis = _build_axis(self._customers)

        amounts: dict[tuple[str, str], float] = {}
        for record in self._customers:
            for month in self._axis:
                amounts[(record.customer, month)] = normalize_amount(record.cells.get(month))
        self._amounts: Mapping[tuple[str, str], float] = MappingProxyType(amounts)

    def __len__(self) -> int:
        return len(self._customers)

    def __repr__(self) -> str:
        return f"RevenueMatrix(customers={len(self._customers)}, months={len(self._axis)})"

    @property
    def customers(self) -> tuple[CustomerRecord, ...]:
        return self._customers

    @property
    def axis(self) -> PeriodAxis:
        return self._axis

    @property
    def customer_ids(self) -> list[str]:
        return [c.customer for c in self._customers]

    @property
    def is_empty(self) -> bool:
        return not self._customers or not self._axis

    def amount(self, customer: str, month: str | None) -> float:
        """Normalized revenue for *customer* in *month*; 0 off the axis."""
        if month is None:
            return 0.0
        return self._amounts.get((customer, month), 0.0)

    def month_total(self, month: str | None, members: Sequence[str] | None = None) -> float:
        """Sum of normalized revenue for *month* over *members* (default: all)."""
        ids = self.customer_ids if members is None else members
        return sum(self.amount(cid, month) for cid in ids)

    def active_in(self, month: str | None) -> list[str]:
        """Customer ids with revenue > 0 in *month*, in matrix order."""
        return [cid for cid in self.customer_ids if self.amount(cid, month) > 0]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _build_axis(records: tuple[CustomerRecord, ...]) -> PeriodAxis:
    seen: set[str] = set()
    for record in records:
        if not record.customer or not str(record.customer).strip():
            raise MatrixValidationError("Customer identity must be a non-empty string")
        if record.customer in seen:
            raise MatrixValidationError(f"Duplicate customer id: {record.customer!r}")
        seen.add(record.customer)
        bad = sorted(str(k) for k in record.cells if not is_month_key(k))
        if bad:
            raise MatrixValidationError(
                f"Customer {record.customer!r} has malformed month keys: {bad}"
            )

    if not records:
        return PeriodAxis([])

    reference = records[0].month_keys
    for record in records[1:]:
        keys = record.month_keys
        if keys != reference:
            missing = sorted(reference - keys)
            extra = sorted(keys - reference)
            raise MatrixValidationError(
                f"Customer {record.customer!r} has a different month set "
                f"(missing={missing}, extra={extra})"
            )

    months = sorted(reference)
    for prev, curr in zip(months, months[1:]):
        if months_between(prev, curr) != 1:
            raise MatrixValidationError(
                f"Month axis is not contiguous: {prev} is followed by {curr}"
            )
    return PeriodAxis(months)
