"""Spreadsheet adapter for sewadar imports.

Reads the first worksheet of an ``.xlsx`` workbook (via openpyxl) or a
``.csv`` file, validates the header row against the sewadar contract and
yields one canonical-key mapping per non-blank data row. The output is plain
JSON-safe data so it can be handed to the Celery task unchanged.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from typing import IO, Iterable, Iterator, Sequence
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from sewa_app.importer.contracts import (
    FieldSpec,
    get_sewadar_alias_map,
    get_sewadar_field_specs,
    get_sewadar_required_headers,
    normalize_header,
)

SUPPORTED_EXTENSIONS: tuple[str, ...] = ("xlsx", "csv")

_CENTER_CODE_REGEX = re.compile(r"\d{4}")


class SpreadsheetAdapterError(Exception):
    """Base exception for spreadsheet adapter failures."""


class SpreadsheetHeaderError(SpreadsheetAdapterError):
    """Raised when the header row does not meet contract requirements."""

    def __init__(
        self,
        *,
        missing: Sequence[str] | None = None,
        duplicates: Sequence[str] | None = None,
    ) -> None:
        details: list[str] = []
        if missing:
            details.append(f"Missing required columns: {', '.join(sorted(missing))}.")
        if duplicates:
            details.append(
                "Duplicate columns detected: "
                + ", ".join(sorted(duplicates))
                + ". Ensure each column appears only once."
            )

        message = "Header validation failed. " + " ".join(details) if details else "Header validation failed."
        super().__init__(message)
        self.missing = tuple(missing or ())
        self.duplicates = tuple(duplicates or ())


class SpreadsheetParseError(SpreadsheetAdapterError):
    """Raised when the file cannot be read as a spreadsheet."""


@dataclass
class SpreadsheetStatistics:
    rows_processed: int = 0
    rows_skipped_blank: int = 0
    ignored_columns: tuple[str, ...] = field(default_factory=tuple)


def file_extension(filename: str | None) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def derive_center_id(badge_number: object | None) -> str | None:
    """Return the first 4-digit group of a badge number (``HI5228GA0001`` -> ``5228``)."""

    if not badge_number:
        return None
    match = _CENTER_CODE_REGEX.search(str(badge_number))
    return match.group(0) if match else None


def _row_is_blank(values: Iterable[object | None]) -> bool:
    return all(value is None or (isinstance(value, str) and value.strip() == "") for value in values)


class SewadarSpreadsheetAdapter:
    """Reader that enforces the sewadar spreadsheet contract."""

    def __init__(self, file_obj: IO[bytes], *, filename: str, skip_blank_rows: bool = True) -> None:
        extension = file_extension(filename)
        if extension not in SUPPORTED_EXTENSIONS:
            raise SpreadsheetParseError(
                f"Unsupported file type '{extension or filename}'. Upload one of: {', '.join(SUPPORTED_EXTENSIONS)}."
            )
        self._file_obj = file_obj
        self.filename = filename
        self.extension = extension
        self.skip_blank_rows = skip_blank_rows
        self.statistics = SpreadsheetStatistics()
        self._field_specs = {spec.name: spec for spec in get_sewadar_field_specs()}

    def _map_headers(self, raw_headers: Sequence[object | None]) -> list[str | None]:
        alias_map = get_sewadar_alias_map()
        seen: set[str] = set()
        duplicates: list[str] = []
        ignored: list[str] = []
        mapped: list[str | None] = []

        for raw in raw_headers:
            header = str(raw or "").strip().lstrip("\ufeff")
            canonical = alias_map.get(normalize_header(header)) if header else None
            if canonical is None:
                if header:
                    ignored.append(header)
                mapped.append(None)
                continue
            if canonical in seen:
                duplicates.append(canonical)
            seen.add(canonical)
            mapped.append(canonical)

        missing = sorted(set(get_sewadar_required_headers()) - seen)
        if missing or duplicates:
            raise SpreadsheetHeaderError(missing=missing, duplicates=duplicates)
        self.statistics.ignored_columns = tuple(ignored)
        return mapped

    def _iter_raw_rows(self) -> Iterator[Sequence[object | None]]:
        data = self._file_obj.read()
        if self.extension == "csv":
            try:
                text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
            except UnicodeDecodeError as exc:
                raise SpreadsheetParseError("CSV file must be UTF-8 encoded.") from exc
            yield from csv.reader(io.StringIO(text, newline=""))
            return

        try:
            workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as exc:
            raise SpreadsheetParseError(
                "Failed to parse Excel file. Please check the file format and try again."
            ) from exc
        try:
            worksheet = workbook.worksheets[0]
            yield from worksheet.iter_rows(values_only=True)
        finally:
            workbook.close()

    def iter_rows(self) -> Iterator[dict[str, object | None]]:
        raw_rows = self._iter_raw_rows()
        try:
            header_row = next(raw_rows)
        except StopIteration:
            raise SpreadsheetHeaderError(missing=get_sewadar_required_headers()) from None
        columns = self._map_headers(header_row)

        for values in raw_rows:
            if self.skip_blank_rows and _row_is_blank(values):
                self.statistics.rows_skipped_blank += 1
                continue
            row: dict[str, object | None] = {name: None for name in self._field_specs}
            for canonical, value in zip(columns, values):
                if canonical is None:
                    continue
                spec: FieldSpec = self._field_specs[canonical]
                row[canonical] = spec.normalizer(value) if spec.normalizer else value
            if not row.get("center_id"):
                row["center_id"] = derive_center_id(row.get("badge_number"))
            self.statistics.rows_processed += 1
            yield row

    def read_rows(self) -> list[dict[str, object | None]]:
        return list(self.iter_rows())
