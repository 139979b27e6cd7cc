"""Single-sheet spreadsheet export of flat records."""

from io import BytesIO
from typing import Iterable, List, Mapping, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font


def xlsx_filename(filename: str) -> str:
    return filename if filename.endswith(".xlsx") else f"{filename}.xlsx"


def export_to_xlsx(filename: str, rows: Iterable[Mapping], sheet_name: str = "Sheet1") -> Tuple[str, bytes]:
    """
    Build a workbook with one sheet.

    The header is the union of the records' keys in first-seen order; a key
    missing from a record leaves its cell empty.
    """
    rows = list(rows)
    headers: List[str] = []
    for row in rows:
        for key in row.keys():
            if key not in headers:
                headers.append(key)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name

    if headers:
        sheet.append(headers)
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        for row in rows:
            sheet.append([row.get(key) for key in headers])

    buffer = BytesIO()
    workbook.save(buffer)
    return xlsx_filename(filename), buffer.getvalue()
