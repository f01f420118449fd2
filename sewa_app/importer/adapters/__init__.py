"""Importer adapters."""

from .spreadsheet import (
    SUPPORTED_EXTENSIONS,
    SewadarSpreadsheetAdapter,
    SpreadsheetAdapterError,
    SpreadsheetHeaderError,
    SpreadsheetParseError,
    SpreadsheetStatistics,
    derive_center_id,
)

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "SewadarSpreadsheetAdapter",
    "SpreadsheetAdapterError",
    "SpreadsheetHeaderError",
    "SpreadsheetParseError",
    "SpreadsheetStatistics",
    "derive_center_id",
]
