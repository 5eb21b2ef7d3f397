"""
spreadsheet/normalizer.py

Converts heterogeneous cell values into numbers.
No I/O, no logging, and no side effects.
"""

from __future__ import annotations

import math
import re
from typing import Any

CURRENCY_SYMBOLS: tuple[str, ...] = ("$", "€", "£", "¥", "₹")

_STRIP_PATTERN = re.compile("[" + re.escape("".join(CURRENCY_SYMBOLS)) + r",\s]")
_ACCOUNTING_NEGATIVE_PATTERN = re.compile(r"\(([^()]*)\)")


def is_blank(value: Any) -> bool:
    """
    Return True for missing cells and strings with no visible content.
    """

    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def normalize_numeric(raw: Any) -> float | None:
    """
    Parse a cell into a float, or return None when it is not numeric.

    Accepts plain numbers as well as text such as ``"$1,234.50"``,
    ``"12%"`` and accounting negatives like ``"(45)"``. Malformed input
    never raises.

    Examples::

        normalize_numeric("$1,234.50")  # 1234.5
        normalize_numeric("12%")        # 0.12
        normalize_numeric("(45)")       # -45.0
        normalize_numeric("n/a")        # None
    """

    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None

    is_percent = text.endswith("%")
    if is_percent:
        text = text[:-1]

    text = _STRIP_PATTERN.sub("", text)
    text = _ACCOUNTING_NEGATIVE_PATTERN.sub(r"-\1", text, count=1)

    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None

    return value / 100 if is_percent else value
