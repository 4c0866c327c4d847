"""
app/validators/row_validator.py

Row-level validation and type parsing for uploaded inventory spreadsheets.

Expected column order: SKU, On Hand, (unused), Description, optional Count.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from typing import Any

from app.domain.inventory import ParsedRow, RowValidationError

SKU_COLUMN = 0
ON_HAND_COLUMN = 1
DESCRIPTION_COLUMN = 3
COUNT_COLUMN = 4

_INTEGER_PATTERN = re.compile(r"^[+-]?\d+(\.0*)?$")
_GROUPED_INTEGER_PATTERN = re.compile(r"^[+-]?\d{1,3}(,\d{3})+$")


def parse_integer(value: Any) -> int | None:
    """
    Parse a cell or user-entered value as an integer.

    Returns None for blanks and for anything that is not a whole number:
    ``"12abc"``, ``"1.5"`` and ``True`` are all None, never a partial value.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if _INTEGER_PATTERN.match(raw):
        return int(raw.split(".", 1)[0])
    if _GROUPED_INTEGER_PATTERN.match(raw):
        return int(raw.replace(",", ""))
    return None


class InventoryRowValidator:
    """
    Validates and parses raw spreadsheet rows into typed rows.
    """

    def is_completely_empty_row(self, row: Sequence[Any]) -> bool:
        """
        Return True when all values in the row are empty or whitespace.
        """

        return all(self._is_blank(value) for value in row)

    def validate_raw_row(
        self,
        *,
        raw_row: Sequence[Any],
        row_number: int,
    ) -> tuple[ParsedRow | None, list[RowValidationError]]:
        """
        Validate and parse one raw row.
        """

        errors: list[RowValidationError] = []

        sku = self._parse_sku(
            value=self._cell(raw_row, SKU_COLUMN),
            row_number=row_number,
            errors=errors,
        )
        on_hand = self._parse_on_hand(
            value=self._cell(raw_row, ON_HAND_COLUMN),
            row_number=row_number,
            errors=errors,
        )

        if errors:
            return None, errors

        return (
            ParsedRow(
                sku=sku,
                on_hand=on_hand,
                description=self._parse_description(self._cell(raw_row, DESCRIPTION_COLUMN)),
                count=parse_integer(self._cell(raw_row, COUNT_COLUMN)),
            ),
            [],
        )

    def _parse_sku(
        self,
        *,
        value: Any,
        row_number: int,
        errors: list[RowValidationError],
    ) -> str:
        if self._is_blank(value):
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="sku",
                    message="SKU is missing.",
                    value=self._stringify_value(value),
                )
            )
            return ""
        # Spreadsheet engines hand numeric SKUs back as floats.
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value).strip()

    def _parse_on_hand(
        self,
        *,
        value: Any,
        row_number: int,
        errors: list[RowValidationError],
    ) -> int:
        if self._is_blank(value):
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="on_hand",
                    message="On Hand is missing.",
                    value=self._stringify_value(value),
                )
            )
            return 0

        parsed = parse_integer(value)
        if parsed is None:
            errors.append(
                RowValidationError(
                    row_number=row_number,
                    column="on_hand",
                    message="On Hand must be a whole number.",
                    value=self._stringify_value(value),
                )
            )
            return 0
        return parsed

    def _parse_description(self, value: Any) -> str:
        if self._is_blank(value):
            return ""
        return str(value).strip()

    @staticmethod
    def _cell(row: Sequence[Any], index: int) -> Any:
        if index < len(row):
            return row[index]
        return None

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, float) and math.isnan(value):
            return True
        return str(value).strip() == ""

    @staticmethod
    def _stringify_value(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, float) and math.isnan(value):
            return None
        return str(value)
