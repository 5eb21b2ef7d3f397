"""
app/validators package marker.
"""

from app.validators.spreadsheet_validator import SpreadsheetFileValidator

__all__ = [
    "SpreadsheetFileValidator",
]
