"""
spreadsheet/detection.py

Keyword-based detection of what kind of data a sheet holds, used to pick
an analysis mode. Looks at header names only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

_MIN_MATCHES = 2

_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sales": (
        "revenue", "sales", "price", "cost", "margin", "profit",
        "units", "quantity", "region", "product", "customer",
    ),
    "survey": ("rating", "score", "feedback", "comment", "review", "satisfaction", "response"),
    "operations": (
        "task", "project", "status", "due", "deadline", "owner",
        "assignee", "priority", "estimated", "actual",
    ),
    "inventory": ("stock", "inventory", "sku", "product", "warehouse", "supplier", "reorder", "lead_time"),
}

_MODE_BY_TYPE: dict[str, str] = {
    "sales": "revenue_analysis",
    "survey": "feedback_analysis",
    "operations": "project_tracking",
    "inventory": "inventory_analysis",
}

_COLUMN_HINTS: dict[str, tuple[str, ...]] = {
    "dates": ("date", "time", "created", "updated"),
    "numeric": ("price", "cost", "amount", "count", "quantity", "rating", "score", "hours", "days"),
    "categorical": ("category", "type", "status", "region", "department", "priority"),
    "text": ("comment", "feedback", "description", "notes", "review", "text"),
}


@dataclass(frozen=True)
class DataTypeDetection:
    """
    Result of header-based data type detection.
    """

    primary_type: str
    confidence: float
    analysis_mode: str
    scores: dict[str, int] = field(default_factory=dict)
    detected_columns: dict[str, list[str]] = field(default_factory=dict)


def detect_data_type(headers: Sequence[str]) -> DataTypeDetection:
    """
    Score each known data type by how many of its keywords appear in the
    headers. Fewer than two matches for the best type means ``"general"``;
    ties go to the type listed first.
    """

    lowered = [str(header).lower() for header in headers]
    scores = {
        data_type: sum(1 for keyword in keywords if any(keyword in header for header in lowered))
        for data_type, keywords in _KEYWORDS.items()
    }

    best_type, best_score = max(scores.items(), key=lambda item: item[1])
    if best_score < _MIN_MATCHES:
        best_type = "general"

    detected_columns = {
        group: [
            header
            for header, lower in zip(headers, lowered)
            if any(hint in lower for hint in hints)
        ]
        for group, hints in _COLUMN_HINTS.items()
    }

    return DataTypeDetection(
        primary_type=best_type,
        confidence=min(1.0, best_score / 10),
        analysis_mode=_MODE_BY_TYPE.get(best_type, "general"),
        scores=scores,
        detected_columns=detected_columns,
    )
