"""
spreadsheet/metrics.py

Deterministic column statistics for parsed tables.

Formulas
--------
total    = sum of the normalized numeric values in the column
average  = total / number of numeric values
min, max = extremes of the numeric values
trend    = sign(last value - first value) mapped to
           increase / decrease / stable

Trend deliberately looks at the first and last values only; a column that
spikes and returns to its starting value reports ``"stable"``.
"""

from __future__ import annotations

from typing import Sequence

from app.domain.spreadsheet import Cell, ColumnMetrics, Trend
from spreadsheet.normalizer import is_blank, normalize_numeric


def column_values(rows: Sequence[Sequence[Cell]], index: int) -> list[Cell]:
    """
    Return the non-blank cells found at *index* across *rows*.

    Short rows contribute nothing for the missing position.
    """

    return [row[index] for row in rows if index < len(row) and not is_blank(row[index])]


def is_numeric_column(values: Sequence[Cell]) -> bool:
    """
    A column is numeric when it has values and every one of them normalizes.
    """

    if not values:
        return False
    return all(normalize_numeric(value) is not None for value in values)


def classify_trend(values: Sequence[float]) -> Trend:
    if len(values) < 2:
        return "stable"
    first, last = values[0], values[-1]
    if last > first:
        return "increase"
    if last < first:
        return "decrease"
    return "stable"


def compute_column_metrics(values: Sequence[Cell]) -> ColumnMetrics | None:
    """
    Aggregate the numeric values of one column.

    Values that fail normalization are skipped. Returns None when no
    numeric value remains.
    """

    numeric_values: list[float] = []
    for value in values:
        normalized = normalize_numeric(value)
        if normalized is not None:
            numeric_values.append(normalized)

    if not numeric_values:
        return None

    total = sum(numeric_values)
    return ColumnMetrics(
        total=total,
        average=total / len(numeric_values),
        min=min(numeric_values),
        max=max(numeric_values),
        trend=classify_trend(numeric_values),
    )


def analyze_columns(
    headers: Sequence[str],
    rows: Sequence[Sequence[Cell]],
    *,
    column_indexes: Sequence[int] | None = None,
) -> tuple[tuple[str, ...], dict[str, ColumnMetrics]]:
    """
    Classify numeric columns and compute their metrics.

    Args:
        headers: Header row of the table.
        rows: Data rows aligned to ``headers``.
        column_indexes: Optional subset of header positions to analyze.
            Defaults to every header.

    Returns:
        ``(numeric_columns, metrics)``. ``numeric_columns`` keeps header
        order without duplicates; for duplicated header names the metrics
        of the last numeric occurrence are kept.
    """

    indexes = range(len(headers)) if column_indexes is None else column_indexes
    numeric_columns: list[str] = []
    metrics: dict[str, ColumnMetrics] = {}

    for index in indexes:
        header = headers[index]
        values = column_values(rows, index)
        if not is_numeric_column(values):
            continue
        column_metrics = compute_column_metrics(values)
        if column_metrics is None:
            continue
        if header not in metrics:
            numeric_columns.append(header)
        metrics[header] = column_metrics

    return tuple(numeric_columns), metrics
