"""
app/services/spreadsheet_reader.py

Turns an uploaded CSV / XLS / XLSX / SpreadsheetML file into validated rows.

Only the first sheet is read and its first row is treated as the header.
Invalid rows (missing SKU, missing or non-integer On Hand) are dropped and
reported; the order of surviving rows is the order of the file.
"""

from __future__ import annotations

import csv
import io
import logging
import xml.etree.ElementTree as ET
from functools import lru_cache
from pathlib import PurePath
from typing import Any

import pandas as pd

from app.config import get_upload_settings
from app.domain.errors import IngestError, UnsupportedFileType
from app.domain.inventory import IngestResult, ParsedRow, RowValidationError
from app.validators.row_validator import InventoryRowValidator

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".csv", ".xls", ".xlsx", ".xml"})

_EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}


def file_extension(filename: str) -> str:
    return PurePath(filename.strip().lower()).suffix


def read_spreadsheet(content: bytes, filename: str) -> list[list[Any]]:
    """
    Return the data rows (header discarded) of the first sheet as cell lists.

    Raises
    ------
    UnsupportedFileType: extension is not csv/xls/xlsx/xml.
    IngestError:         the file has no parseable sheet.
    """

    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileType(
            f"Unsupported file type {extension or '(none)'!r}. "
            f"Allowed: {', '.join(sorted(SUPPORTED_EXTENSIONS))}."
        )

    # Legacy "xls" exports are frequently SpreadsheetML saved with an .xls name.
    if extension == ".xml" or (extension == ".xls" and content.lstrip().startswith(b"<?xml")):
        rows = _read_spreadsheet_ml(content)
    elif extension == ".csv":
        rows = _read_csv(content)
    else:
        rows = _read_excel(content, engine=_EXCEL_ENGINES[extension])

    return rows[1:]


def _read_csv(content: bytes) -> list[list[Any]]:
    try:
        text = content.decode("utf-8-sig")
        return [list(row) for row in csv.reader(io.StringIO(text, newline=""))]
    except UnicodeDecodeError as exc:
        raise IngestError("CSV must be UTF-8 encoded.") from exc
    except csv.Error as exc:
        raise IngestError(f"Invalid CSV format: {exc}") from exc


def _read_excel(content: bytes, *, engine: str) -> list[list[Any]]:
    try:
        frame = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
        )
    except ImportError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise IngestError(f"Could not read spreadsheet: {exc}") from exc

    return [
        [None if pd.isna(cell) else cell for cell in row]
        for row in frame.itertuples(index=False, name=None)
    ]


def _read_spreadsheet_ml(content: bytes) -> list[list[Any]]:
    """
    Parse an Excel 2003 XML (SpreadsheetML) workbook's first worksheet.
    """

    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise IngestError(f"Invalid XML spreadsheet: {exc}") from exc

    worksheet = next((node for node in root.iter() if _local_name(node.tag) == "Worksheet"), None)
    if worksheet is None:
        raise IngestError("No worksheet found in XML spreadsheet.")

    rows: list[list[Any]] = []
    for row_node in (node for node in worksheet.iter() if _local_name(node.tag) == "Row"):
        cells: list[Any] = []
        for cell_node in row_node:
            if _local_name(cell_node.tag) != "Cell":
                continue
            index = _attribute(cell_node, "Index")
            if index is not None:
                # ss:Index is 1-based and skips empty cells.
                target = int(index) - 1
                while len(cells) < target:
                    cells.append(None)
            cells.append(_cell_value(cell_node))
        rows.append(cells)
    return rows


def _cell_value(cell_node: ET.Element) -> Any:
    data = next((child for child in cell_node if _local_name(child.tag) == "Data"), None)
    if data is None:
        return None
    text = "".join(data.itertext())
    if _attribute(data, "Type") == "Number":
        try:
            number = float(text)
        except ValueError:
            return text
        return int(number) if number.is_integer() else number
    return text


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _attribute(node: ET.Element, local_name: str) -> str | None:
    for key, value in node.attrib.items():
        if _local_name(key) == local_name:
            return value
    return None


class SpreadsheetIngestor:
    """
    Coordinates reading and row validation for one uploaded spreadsheet.
    """

    def __init__(
        self,
        *,
        max_validation_errors: int,
        log_validation_errors: bool,
        validator: InventoryRowValidator | None = None,
    ) -> None:
        self._max_validation_errors = max(1, max_validation_errors)
        self._log_validation_errors = log_validation_errors
        self._validator = validator or InventoryRowValidator()

    def ingest(self, *, content: bytes, filename: str) -> IngestResult:
        """
        Read the file and keep the rows that pass validation.

        Raises IngestError when no valid rows remain.
        """

        raw_rows = read_spreadsheet(content, filename)
        result = self.ingest_rows(raw_rows)
        if not result.rows:
            raise IngestError("No valid rows found in file.")
        return result

    def ingest_rows(self, raw_rows: list[list[Any]]) -> IngestResult:
        rows: list[ParsedRow] = []
        rows_failed = 0
        captured_errors: list[RowValidationError] = []

        # Row 1 is the header that read_spreadsheet already dropped.
        for row_number, raw_row in enumerate(raw_rows, start=2):
            if self._validator.is_completely_empty_row(raw_row):
                rows_failed += 1
                continue

            parsed_row, row_errors = self._validator.validate_raw_row(
                raw_row=raw_row,
                row_number=row_number,
            )
            if row_errors or parsed_row is None:
                rows_failed += 1
                for error in row_errors:
                    self._record_error(captured_errors, error)
                continue

            rows.append(parsed_row)

        return IngestResult(rows=rows, rows_failed=rows_failed, validation_errors=captured_errors)

    def _record_error(
        self,
        captured_errors: list[RowValidationError],
        error: RowValidationError,
    ) -> None:
        if self._log_validation_errors:
            logger.warning(
                "Spreadsheet validation error row=%s column=%s message=%s value=%r",
                error.row_number,
                error.column,
                error.message,
                error.value,
            )

        if len(captured_errors) < self._max_validation_errors:
            captured_errors.append(error)


@lru_cache(maxsize=1)
def get_spreadsheet_ingestor() -> SpreadsheetIngestor:
    """
    Build and cache the ingestor with env-driven settings.
    """

    settings = get_upload_settings()
    return SpreadsheetIngestor(
        max_validation_errors=settings.max_validation_errors,
        log_validation_errors=settings.log_validation_errors,
    )


__all__ = [
    "SUPPORTED_EXTENSIONS",
    "SpreadsheetIngestor",
    "file_extension",
    "get_spreadsheet_ingestor",
    "read_spreadsheet",
]
