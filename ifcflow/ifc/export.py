"""Tabular export of element properties (CSV, JSON, Excel)."""

import io
import json
import logging
import re
from typing import Any

from openpyxl import Workbook

from ifcflow.ifc.elements import lookup_path

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = "Name,Type,Material"
EXPORT_FORMATS = ("csv", "json", "excel")

# Characters Excel does not allow in worksheet names
_INVALID_SHEET_CHARS = re.compile(r"[\\/?*\[\]:]")


def parse_columns(columns: str | None, elements: list[dict[str, Any]]) -> list[str]:
    """Column headers from a comma separated string, else the first element's properties."""
    if columns:
        return [column.strip() for column in columns.split(",") if column.strip()]
    if elements:
        return list((elements[0].get("properties") or {}).keys())
    return []


def build_rows(elements: list[dict[str, Any]], columns: list[str]) -> list[dict[str, Any]]:
    """One dict per element; "Pset.Prop" columns read from property sets."""
    return [{column: lookup_path(element, column) for column in columns} for element in elements]


def _csv_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    if isinstance(value, bool):
        text = "true" if value else "false"
    if any(char in text for char in (",", '"', "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(rows: list[dict[str, Any]], columns: list[str]) -> str:
    lines = [",".join(columns)]
    for row in rows:
        lines.append(",".join(_csv_cell(row.get(column)) for column in columns))
    return "\n".join(lines) + "\n"


def _excel_cell(value: Any) -> Any:
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return value


def sheet_title(name: str) -> str:
    """A worksheet name derived from ``name``: invalid characters dropped, at most 31 chars."""
    title = _INVALID_SHEET_CHARS.sub("", name or "").strip("' ")[:31]
    return title or "Elements"


def to_excel(rows: list[dict[str, Any]], columns: list[str], sheet: str = "Elements") -> bytes:
    """Render rows as an .xlsx workbook and return its bytes."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title(sheet)

    for col_idx, column in enumerate(columns, start=1):
        ws.cell(row=1, column=col_idx, value=column)

    for row_idx, row in enumerate(rows, start=2):
        for col_idx, column in enumerate(columns, start=1):
            ws.cell(row=row_idx, column=col_idx, value=_excel_cell(row.get(column)))

    buffer = io.BytesIO()
    wb.save(buffer)
    wb.close()
    return buffer.getvalue()


def export_data(
    elements: list[dict[str, Any]],
    format: str = "csv",
    file_name: str = "export",
    columns: str | None = DEFAULT_COLUMNS,
) -> str | bytes:
    """
    Serialize element properties.

    Returns CSV or JSON text, or xlsx bytes for "excel". With no elements
    CSV is "" and JSON is "[]".

    Raises:
        ValueError: unsupported format
    """
    format = format.lower()
    if format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {format}")

    if not elements:
        logger.warning(f"⚠ No elements to export as {format}")
        if format == "json":
            return "[]"
        if format == "excel":
            return to_excel([], parse_columns(columns, []), sheet=file_name)
        return ""

    headers = parse_columns(columns, elements)
    rows = build_rows(elements, headers)
    logger.debug(f"Exporting {len(rows)} rows as {format} ({file_name})")

    if format == "json":
        return json.dumps(rows, indent=2, ensure_ascii=False, default=str)
    if format == "excel":
        return to_excel(rows, headers, sheet=file_name)
    return to_csv(rows, headers)
