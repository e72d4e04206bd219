"""Generic workbook write (multi-sheet xlsx) and read (first sheet of xlsx/csv)."""

import csv
import io
import logging
import zipfile
from typing import Any, Dict, List, Tuple

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from shared.exceptions import ValidationError
from shared.validators import validate_file_extension

logger = logging.getLogger(__name__)

IMPORT_EXTENSIONS = ['.xlsx', '.csv']

# Excel rejects longer sheet titles
MAX_SHEET_TITLE = 31

MAX_COLUMN_WIDTH = 50


def write_workbook(sheets: Dict[str, List[Dict[str, Any]]]) -> bytes:
    """
    Write one sheet per entry, in insertion order.

    Each sheet's header row is the union of its row keys, first seen first.

    Args:
        sheets: Mapping of sheet name to list of row dicts

    Returns:
        xlsx file bytes
    """
    wb = openpyxl.Workbook()
    wb.remove(wb.active)

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")

    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name[:MAX_SHEET_TITLE])

        headers: List[str] = []
        for row in rows:
            for key in row:
                if key not in headers:
                    headers.append(key)

        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill

        for row_num, row in enumerate(rows, 2):
            for col, header in enumerate(headers, 1):
                ws.cell(row=row_num, column=col, value=row.get(header))

        for col, header in enumerate(headers, 1):
            longest = max([len(str(header))] + [len(str(row.get(header, ''))) for row in rows])
            ws.column_dimensions[get_column_letter(col)].width = min(longest + 2, MAX_COLUMN_WIDTH)

    if not wb.sheetnames:
        wb.create_sheet(title="Sheet1")

    output = io.BytesIO()
    wb.save(output)

    logger.info(f"Wrote workbook with sheets: {', '.join(wb.sheetnames)}")
    return output.getvalue()


def read_first_sheet(content: bytes, filename: str) -> List[Dict[str, Any]]:
    """Row dicts of the first sheet, without their sheet line numbers."""
    return [row for _, row in numbered_rows(content, filename)]


def numbered_rows(content: bytes, filename: str) -> List[Tuple[int, Dict[str, Any]]]:
    """
    Read the first sheet of an uploaded workbook as row dicts keyed by header.

    Blank rows are skipped but keep their place in the numbering, so each row
    carries the 1-based line it occupies in the sheet (the header is line 1).
    Cells under an empty header are ignored.

    Args:
        content: Uploaded file bytes
        filename: Original filename, used to pick the format

    Returns:
        List of (sheet line, row dict) pairs

    Raises:
        ValidationError: If the format is unsupported or the file is unreadable
    """
    extension = validate_file_extension(filename, IMPORT_EXTENSIONS)

    if extension == 'csv':
        table = _read_csv(content)
    else:
        table = _read_xlsx(content)

    if not table:
        return []

    headers = [str(value).strip() if value is not None else '' for value in table[0]]
    rows = []

    for line, values in enumerate(table[1:], 2):
        if all(value in (None, '') for value in values):
            continue
        rows.append((line, {
            header: value
            for header, value in zip(headers, values)
            if header
        }))

    logger.info(f"Read {len(rows)} rows from {filename}")
    return rows


def _read_xlsx(content: bytes) -> List[List[Any]]:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        logger.error(f"Unreadable workbook: {e}")
        raise ValidationError("Could not read the Excel file")

    try:
        ws = wb.worksheets[0]
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _read_csv(content: bytes) -> List[List[Any]]:
    try:
        text = content.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        logger.error(f"Unreadable CSV: {e}")
        raise ValidationError("Could not read the CSV file")

    return [list(row) for row in csv.reader(io.StringIO(text))]
