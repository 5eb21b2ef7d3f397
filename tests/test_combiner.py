from __future__ import annotations

import pytest

from app.domain.spreadsheet import DocumentRecord, ParsedTable
from spreadsheet.combiner import combine_documents, union_headers
from spreadsheet.metrics import analyze_columns
from spreadsheet.parsing import to_delimited_text


def _document(file_name: str, headers: tuple[str, ...], rows: tuple[tuple, ...]) -> DocumentRecord:
    numeric_columns, metrics = analyze_columns(headers, rows)
    return DocumentRecord(
        id=file_name,
        file_name=file_name,
        table=ParsedTable(headers=headers, rows=rows, numeric_columns=numeric_columns),
        text_representation=to_delimited_text(headers, rows),
        metrics=metrics,
    )


def test_empty_input_gives_empty_dataset() -> None:
    combined = combine_documents([])

    assert combined.table.headers == ()
    assert combined.table.rows == ()
    assert combined.text_representation == ""
    assert combined.metrics == {}


def test_single_document_gets_provenance_column() -> None:
    document = _document("a.csv", ("Month", "Sales"), (("Jan", "100"), ("Feb", "150")))

    combined = combine_documents([document])

    assert combined.table.headers == ("Month", "Sales", "Document")
    assert combined.table.rows == (("Jan", "100", "a.csv"), ("Feb", "150", "a.csv"))
    assert combined.metrics == document.metrics
    assert combined.text_representation == "### Document: a.csv\n" + document.text_representation + "\n\n"


def test_overlapping_headers_are_unioned_in_first_appearance_order() -> None:
    north = _document("north.csv", ("Region", "Sales"), (("North", "100"),))
    south = _document("south.csv", ("Region", "Cost"), (("South", "40"), ("East", "60")))

    combined = combine_documents([north, south])

    assert combined.table.headers == ("Region", "Sales", "Cost", "Document")
    assert combined.table.rows == (
        ("North", "100", "", "north.csv"),
        ("South", "", "40", "south.csv"),
        ("East", "", "60", "south.csv"),
    )
    assert combined.table.numeric_columns == ("Sales", "Cost")
    assert combined.metrics["Sales"].total == pytest.approx(100.0)
    assert combined.metrics["Cost"].total == pytest.approx(100.0)
    assert combined.metrics["Cost"].trend == "increase"
    assert "Document" not in combined.metrics


def test_disjoint_headers_keep_every_column() -> None:
    first = _document("x.csv", ("A",), (("1",),))
    second = _document("y.csv", ("B",), (("2",),))

    combined = combine_documents([first, second])

    assert union_headers([first, second]) == ["A", "B"]
    assert combined.table.headers == ("A", "B", "Document")
    assert combined.table.rows == (("1", "", "x.csv"), ("", "2", "y.csv"))


def test_short_rows_are_padded_with_blanks() -> None:
    document = _document("short.csv", ("A", "B", "C"), (("1",), ("2", "3", "4")))

    combined = combine_documents([document])

    assert combined.table.rows == (("1", "", "", "short.csv"), ("2", "3", "4", "short.csv"))


def test_numeric_classification_is_recomputed_on_the_union() -> None:
    numeric = _document("n.csv", ("Value",), (("10",), ("20",)))
    text = _document("t.csv", ("Value",), (("high",),))

    combined = combine_documents([numeric, text])

    assert numeric.table.numeric_columns == ("Value",)
    assert combined.table.numeric_columns == ()
    assert combined.metrics == {}


def test_combination_is_deterministic() -> None:
    documents = [
        _document("a.csv", ("K", "V"), (("x", "1"), ("y", "2"))),
        _document("b.csv", ("V", "W"), (("3", "z"),)),
    ]

    first = combine_documents(documents)
    second = combine_documents(list(documents))

    assert first == second
    assert first.text_representation.index("### Document: a.csv") < first.text_representation.index(
        "### Document: b.csv"
    )
