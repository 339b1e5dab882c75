"""Spreadsheet rows / CSV / Excel → RevenueMatrix."""
from __future__ import annotations

import logging
from datetime import date, datetime
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Iterable

import numpy as np
import pandas as pd

from config.settings import settings
from revenue_brain.metrics.matrix import (
    CustomerRecord,
    MatrixValidationError,
    RevenueMatrix,
    is_month_key,
)

logger = logging.getLogger(__name__)

NO_DATE = "N/A"


def _format_date(value: Any) -> str:
    """Render a declared start/end date as ``YYYY-MM-DD`` ("N/A" if absent).

    Strings that do not look like dates are passed through unchanged.
    """
    if value is None or value == "" or value == NO_DATE:
        return NO_DATE
    if isinstance(value, float) and np.isnan(value):
        return NO_DATE
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return value.strftime("%Y-%m-%d")
    try:
        parsed = pd.to_datetime(str(value))
    except (ValueError, TypeError, OverflowError):
        return str(value)
    if pd.isna(parsed):
        return NO_DATE
    return parsed.strftime("%Y-%m-%d")


def _month_column(column: Any) -> str | None:
    """Month key for a header cell (``YYYY-MM`` strings or parsed dates)."""
    if isinstance(column, (datetime, pd.Timestamp)):
        return f"{column.year:04d}-{column.month:02d}"
    text = str(column).strip()
    return text if is_month_key(text) else None


def matrix_from_rows(rows: Iterable[dict]) -> RevenueMatrix:
    """Build a validated matrix from spreadsheet-style row dicts.

    Rows with an empty identity or the totals label are dropped.  Month
    columns missing from a row are filled with None so every record
    carries the full month set.  Columns that are neither identity, dates
    nor ``YYYY-MM`` months are ignored.

    Raises:
        MatrixValidationError: if rows are malformed (see RevenueMatrix).
    """
    rows = list(rows)
    id_col = settings.customer_column

    kept: list[dict] = []
    dropped = 0
    for row in rows:
        ident = row.get(id_col)
        if ident is None or (isinstance(ident, float) and np.isnan(ident)):
            dropped += 1
            continue
        ident = str(ident).strip()
        if not ident or ident == settings.totals_label:
            dropped += 1
            continue
        kept.append(row)

    if dropped:
        logger.info("Dropped %d empty/totals rows of %d", dropped, len(rows))

    months: set[str] = set()
    for row in kept:
        for column in row:
            key = _month_column(column)
            if key:
                months.add(key)
    ordered = sorted(months)

    records = []
    for row in kept:
        cells: dict[str, Any] = {m: None for m in ordered}
        for column, value in row.items():
            key = _month_column(column)
            if key:
                cells[key] = value
        records.append(CustomerRecord(
            customer=str(row[id_col]).strip(),
            cells=cells,
            start_date=_format_date(row.get(settings.start_date_column)),
            end_date=_format_date(row.get(settings.end_date_column)),
        ))

    return RevenueMatrix(records)


def matrix_from_dataframe(df: pd.DataFrame) -> RevenueMatrix:
    """Build a matrix from a DataFrame with one row per customer.

    Raises:
        MatrixValidationError: if the identity column is missing or the
            rows are malformed.
    """
    if df.empty:
        return RevenueMatrix([])
    if settings.customer_column not in df.columns:
        raise MatrixValidationError(
            f"Missing identity column {settings.customer_column!r} "
            f"(columns: {[str(c) for c in df.columns[:10]]})"
        )
    rows = df.replace({np.nan: None}).to_dict(orient="records")
    return matrix_from_rows(rows)


def read_table(contents: bytes, file_name: str) -> pd.DataFrame:
    """Parse uploaded bytes as Excel (``.xlsx``/``.xls``) or CSV by extension."""
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else "csv"
    if ext in ("xlsx", "xls"):
        return pd.read_excel(BytesIO(contents))
    return pd.read_csv(StringIO(contents.decode("utf-8-sig")), dtype=str, keep_default_na=False)


def load_matrix(path: Path) -> RevenueMatrix:
    """Read a CSV or Excel file into a validated matrix."""
    path = Path(path)
    df = read_table(path.read_bytes(), path.name)
    logger.info("Read %d rows x %d columns from %s", len(df), len(df.columns), path.name)
    return matrix_from_dataframe(df)
