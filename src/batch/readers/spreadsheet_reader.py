"""
Spreadsheet reader for .xlsx exports using openpyxl.

Marketplace workbooks often carry title rows above the header and, for
payments, a sub-header row below it; the header row is located by matching
cells against the expected columns.
"""

from datetime import date, datetime, time
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from src.core.schema.column_spec import ColumnSpec, normalize_header
from src.observability.logger import get_logger

from .tabular import TabularData, TabularReadError

logger = get_logger(__name__)


def cell_text(value: Any) -> str:
    """
    Render a cell value as payload text.

    Integral floats lose their ".0", dates become ISO dates and datetimes
    "YYYY-MM-DD HH:MM:SS" (bare dates when the time is midnight).
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value).strip()


class SpreadsheetReader:
    """
    Reads the relevant sheet of a workbook into TabularData.
    """

    HEADER_SCAN_ROWS = 20
    MIN_HEADER_MATCHES = 2

    def read_table(self, file_path: str | Path, spec: ColumnSpec) -> TabularData:
        """
        Read a workbook for a record type.

        Args:
            file_path: Path to the .xlsx file
            spec: Column spec of the record type being uploaded

        Returns:
            TabularData with the detected header row and non-blank data rows

        Raises:
            TabularReadError: If the workbook cannot be opened or has no header row
        """
        try:
            workbook = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
        except (InvalidFileException, BadZipFile, KeyError, OSError) as e:
            raise TabularReadError(f"Cannot open workbook: {e}") from e

        try:
            sheet = self._select_sheet(workbook, spec.record_type)
            all_rows = [list(row) for row in sheet.iter_rows(values_only=True)]
            logger.info(f"Reading sheet '{sheet.title}' with {len(all_rows)} rows")

            header_idx = self._find_header_row(all_rows, spec)
            if header_idx is None:
                raise TabularReadError("No valid header row found")

            headers = [cell_text(cell) for cell in all_rows[header_idx]]
            first_data_row = header_idx + spec.sheet_data_offset

            rows = []
            for raw_row in all_rows[first_data_row:]:
                values = [cell_text(cell) for cell in raw_row]
                if any(values):
                    rows.append(values)

            return TabularData(headers=headers, rows=rows, source=f"{file_path}#{sheet.title}")
        finally:
            workbook.close()

    def _select_sheet(self, workbook, record_type: str):
        """
        Pick the sheet to read.

        Payment workbooks hold several sheets; the one named like
        "Order Payments" is preferred. Otherwise the first sheet is used.
        """
        if record_type == "PAYMENTS":
            for sheet in workbook.worksheets:
                title = sheet.title.lower()
                if "order" in title and "payment" in title:
                    return sheet
        return workbook.worksheets[0]

    def _find_header_row(self, rows: list[list[Any]], spec: ColumnSpec) -> int | None:
        """
        Locate the header row among the first HEADER_SCAN_ROWS rows.

        Returns:
            Index of the first row matching at least MIN_HEADER_MATCHES expected
            columns, or None
        """
        expected = set(spec.expected_headers)
        for idx, row in enumerate(rows[:self.HEADER_SCAN_ROWS]):
            matches = sum(1 for cell in row if normalize_header(cell) in expected)
            if matches >= self.MIN_HEADER_MATCHES:
                logger.debug(f"Header row detected at index {idx} ({matches} matches)")
                return idx
        return None
