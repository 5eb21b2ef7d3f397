"""
spreadsheet/combiner.py

Merges several ingested documents into one union table.
Pure function: no I/O, no hidden state.
"""

from __future__ import annotations

from typing import Sequence

from app.domain.spreadsheet import (
    DOCUMENT_COLUMN,
    Cell,
    CombinedDataset,
    DocumentRecord,
    ParsedTable,
)
from spreadsheet.metrics import analyze_columns

DOCUMENT_MARKER = "### Document: {file_name}\n"


def union_headers(records: Sequence[DocumentRecord]) -> list[str]:
    """
    Distinct header names across *records*, in order of first appearance.
    """

    seen: dict[str, None] = {}
    for record in records:
        for header in record.table.headers:
            seen.setdefault(header, None)
    return list(seen)


def combine_documents(records: Sequence[DocumentRecord]) -> CombinedDataset:
    """
    Realign every document row onto the union of all headers.

    Output headers are the union headers followed by the ``"Document"``
    provenance column. Cells for headers a document does not have are
    left blank. Numeric classification and metrics are recomputed over
    the union columns; blank cells from other documents do not count
    against a column being numeric.

    The text representation concatenates each document's own text in
    input order, each preceded by ``### Document: <file_name>`` and
    followed by a blank line.
    """

    if not records:
        return CombinedDataset(table=ParsedTable(), text_representation="", metrics={})

    union = union_headers(records)
    headers = (*union, DOCUMENT_COLUMN)
    width = len(headers)

    rows: list[tuple[Cell, ...]] = []
    for record in records:
        # Last occurrence wins for a header repeated inside one document.
        source_index = {header: index for index, header in enumerate(record.table.headers)}
        for source_row in record.table.rows:
            row: list[Cell] = [""] * width
            for union_index, header in enumerate(union):
                index = source_index.get(header)
                if index is not None and index < len(source_row):
                    row[union_index] = source_row[index]
            row[width - 1] = record.file_name
            rows.append(tuple(row))

    numeric_columns, metrics = analyze_columns(
        headers,
        rows,
        column_indexes=range(len(union)),
    )

    text_representation = "".join(
        DOCUMENT_MARKER.format(file_name=record.file_name) + record.text_representation + "\n\n"
        for record in records
    )

    return CombinedDataset(
        table=ParsedTable(
            headers=headers,
            rows=tuple(rows),
            numeric_columns=numeric_columns,
        ),
        text_representation=text_representation,
        metrics=metrics,
    )
