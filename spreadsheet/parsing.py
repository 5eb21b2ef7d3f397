"""
spreadsheet/parsing.py

Decodes raw file bytes into a grid of cells and renders grids back to
comma-separated text.
"""

from __future__ import annotations

import csv
import io
import math
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Iterable, Sequence

import numpy as np
import pandas as pd

from app.domain.spreadsheet import Cell
from spreadsheet.normalizer import is_blank


class SpreadsheetFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"


_EXCEL_ENGINES: dict[SpreadsheetFormat, str] = {
    SpreadsheetFormat.XLSX: "openpyxl",
    SpreadsheetFormat.XLS: "xlrd",
}


class SpreadsheetParseError(ValueError):
    """
    Raised when file content cannot be decoded into a grid.
    """


def read_grid(content: bytes, file_format: SpreadsheetFormat) -> list[list[Cell]]:
    """
    Decode *content* into rows of cells.

    CSV cells are always strings. Workbook cells come from the first
    worksheet and keep their numeric type. Rows without any visible
    value are dropped.
    """

    if file_format is SpreadsheetFormat.CSV:
        grid = _read_csv_grid(content)
    else:
        grid = _read_excel_grid(content, file_format)
    return [row for row in grid if not all(is_blank(cell) for cell in row)]


def _read_csv_grid(content: bytes) -> list[list[Cell]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SpreadsheetParseError("CSV must be UTF-8 encoded.") from exc

    try:
        return [list(row) for row in csv.reader(io.StringIO(text, newline=""))]
    except csv.Error as exc:
        raise SpreadsheetParseError(f"Invalid CSV format: {exc}") from exc


def _read_excel_grid(content: bytes, file_format: SpreadsheetFormat) -> list[list[Cell]]:
    engine = _EXCEL_ENGINES[file_format]
    try:
        frame = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as exc:  # noqa: BLE001
        raise SpreadsheetParseError(f"Invalid {file_format.value.upper()} workbook: {exc}") from exc

    return [[coerce_cell(value) for value in row] for row in frame.itertuples(index=False, name=None)]


def coerce_cell(value: Any) -> Cell:
    """
    Map a reader value onto the cell domain (text, number or empty).
    """

    if value is None:
        return ""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return "" if math.isnan(value) else value
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return value
    if value is pd.NaT:
        return ""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def format_cell(value: Cell) -> str:
    """
    Render one cell as text; integral floats lose their fractional part.
    """

    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_delimited_text(headers: Sequence[str], rows: Iterable[Sequence[Cell]]) -> str:
    """
    Serialize a header row and data rows as comma-separated text.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([format_cell(cell) for cell in row])
    return buffer.getvalue()
