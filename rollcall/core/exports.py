"""CSV and Excel renderings of report rows. Presentation only; nothing reads these back."""

import csv
import io
from decimal import Decimal
from enum import Enum
from typing import Any, List, Sequence

from fastapi import Response
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from rollcall.core.enums import ExportFormat

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv"
MAX_COLUMN_WIDTH = 50


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (int, float, str)):
        return value
    return str(value)


def build_csv(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(list(headers))
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return buf.getvalue().encode("utf-8")


def build_xlsx(headers: Sequence[str], rows: Sequence[Sequence[Any]], sheet_title: str = "Report") -> bytes:
    """Single-sheet workbook, bold header row, columns sized to their longest value."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]  # Excel sheet name limit
    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([_cell(v) for v in row])

    widths: List[int] = [len(str(h)) for h in headers]
    for row in ws.iter_rows(min_row=2, values_only=True):
        for i, value in enumerate(row):
            if i < len(widths) and value is not None:
                widths[i] = max(widths[i], len(str(value)))
    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = min(width + 2, MAX_COLUMN_WIDTH)

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def export_response(
    fmt: ExportFormat,
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    filename: str,
    sheet_title: str = "Report",
) -> Response:
    if fmt == ExportFormat.XLSX:
        content = build_xlsx(headers, rows, sheet_title)
        media_type = XLSX_MEDIA_TYPE
    else:
        content = build_csv(headers, rows)
        media_type = CSV_MEDIA_TYPE
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}.{fmt.value}"},
    )
