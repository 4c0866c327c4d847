"""
tests/test_spreadsheet_reader.py

Pytest unit tests for reading uploaded spreadsheets into validated rows.

Coverage
--------
- CSV with and without BOM, header row dropped
- SpreadsheetML (.xml, and .xls files that are really XML) with ss:Index gaps
- XLSX through pandas/openpyxl, numeric SKUs normalized
- Unsupported extensions, unparseable files, zero valid rows
- Failed-row counting and validation error capping
"""

from __future__ import annotations

import io

import pytest
from openpyxl import Workbook

from app.domain.errors import IngestError, UnsupportedFileType
from app.services.spreadsheet_reader import SpreadsheetIngestor, read_spreadsheet

SPREADSHEET_ML = b"""<?xml version="1.0"?>
<Workbook xmlns="urn:schemas-microsoft-com:office:spreadsheet"
          xmlns:ss="urn:schemas-microsoft-com:office:spreadsheet">
  <Worksheet ss:Name="Inventory">
    <Table>
      <Row>
        <Cell><Data ss:Type="String">SKU</Data></Cell>
        <Cell><Data ss:Type="String">On Hand</Data></Cell>
      </Row>
      <Row>
        <Cell><Data ss:Type="Number">1001</Data></Cell>
        <Cell><Data ss:Type="Number">7</Data></Cell>
        <Cell ss:Index="4"><Data ss:Type="String">Bolt</Data></Cell>
      </Row>
      <Row>
        <Cell><Data ss:Type="String">B-2</Data></Cell>
        <Cell><Data ss:Type="Number">3</Data></Cell>
      </Row>
    </Table>
  </Worksheet>
  <Worksheet ss:Name="Ignored">
    <Table><Row><Cell><Data ss:Type="String">x</Data></Cell></Row></Table>
  </Worksheet>
</Workbook>
"""


def _xlsx_bytes(rows: list[list[object]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def ingestor() -> SpreadsheetIngestor:
    return SpreadsheetIngestor(max_validation_errors=2, log_validation_errors=False)


# ---------------------------------------------------------------------------
# read_spreadsheet
# ---------------------------------------------------------------------------


class TestReadSpreadsheet:
    def test_csv_drops_header(self) -> None:
        content = b"SKU,On Hand,Bin,Description\nA-1,4,B1,Widget\nA-2,5,B2,Gadget\n"

        assert read_spreadsheet(content, "stock.csv") == [
            ["A-1", "4", "B1", "Widget"],
            ["A-2", "5", "B2", "Gadget"],
        ]

    def test_csv_with_bom(self) -> None:
        content = "\ufeffSKU,On Hand\nA-1,4\n".encode("utf-8")

        assert read_spreadsheet(content, "STOCK.CSV") == [["A-1", "4"]]

    def test_spreadsheet_ml_first_sheet_with_index_gap(self) -> None:
        rows = read_spreadsheet(SPREADSHEET_ML, "stock.xml")

        assert rows == [[1001, 7, None, "Bolt"], ["B-2", 3]]

    def test_xls_that_is_really_xml(self) -> None:
        rows = read_spreadsheet(SPREADSHEET_ML, "legacy.xls")

        assert len(rows) == 2

    def test_xlsx_through_pandas(self) -> None:
        content = _xlsx_bytes([["SKU", "On Hand"], [12345, 2], ["C-3", 8]])

        rows = read_spreadsheet(content, "stock.xlsx")

        assert len(rows) == 2
        assert rows[1][0] == "C-3"

    def test_unsupported_extension(self) -> None:
        with pytest.raises(UnsupportedFileType):
            read_spreadsheet(b"whatever", "stock.pdf")

    def test_invalid_xml(self) -> None:
        with pytest.raises(IngestError):
            read_spreadsheet(b"<Workbook><Worksheet>", "stock.xml")

    def test_corrupt_xlsx(self) -> None:
        with pytest.raises(IngestError):
            read_spreadsheet(b"not a zip file", "stock.xlsx")


# ---------------------------------------------------------------------------
# SpreadsheetIngestor
# ---------------------------------------------------------------------------


class TestSpreadsheetIngestor:
    def test_keeps_valid_rows_in_order(self, ingestor: SpreadsheetIngestor) -> None:
        content = b"SKU,On Hand,Bin,Description,Count\nA-1,4,,Widget,\n,9,,Missing sku,\nA-2,x,,,\nA-3,6,,Bolt,6\n"

        result = ingestor.ingest(content=content, filename="stock.csv")

        assert [row.sku for row in result.rows] == ["A-1", "A-3"]
        assert result.rows[1].count == 6
        assert result.rows_failed == 2
        assert [error.row_number for error in result.validation_errors] == [3, 4]

    def test_xlsx_numeric_sku_is_a_string(self, ingestor: SpreadsheetIngestor) -> None:
        content = _xlsx_bytes([["SKU", "On Hand"], [12345, 2]])

        result = ingestor.ingest(content=content, filename="stock.xlsx")

        assert result.rows[0].sku == "12345"
        assert result.rows[0].on_hand == 2

    def test_empty_rows_count_as_failed(self, ingestor: SpreadsheetIngestor) -> None:
        result = ingestor.ingest_rows([["A-1", "1"], ["", ""], [None]])

        assert len(result.rows) == 1
        assert result.rows_failed == 2
        assert result.validation_errors == []

    def test_validation_errors_are_capped(self, ingestor: SpreadsheetIngestor) -> None:
        result = ingestor.ingest_rows([["", "1"]] * 5 + [["A", "1"]])

        assert result.rows_failed == 5
        assert len(result.validation_errors) == 2

    def test_zero_valid_rows_is_an_ingest_error(self, ingestor: SpreadsheetIngestor) -> None:
        with pytest.raises(IngestError):
            ingestor.ingest(content=b"SKU,On Hand\n,1\n", filename="stock.csv")

    def test_header_only_file_is_an_ingest_error(self, ingestor: SpreadsheetIngestor) -> None:
        with pytest.raises(IngestError):
            ingestor.ingest(content=b"SKU,On Hand\n", filename="stock.csv")
