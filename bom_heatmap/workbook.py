from __future__ import annotations

import io
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Sequence

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from bom_heatmap.heatmap import calculate_heatmap_color
from bom_heatmap.models import SUPPLIER_KEYS, BomRow
from bom_heatmap.table import display_name, supplier_label
from bom_heatmap.tree import iter_tree

logger = logging.getLogger(__name__)

HEATMAP_SHEET = "BOM Heatmap"
HIERARCHY_SHEET = "Hierarchy"

RATE_FORMAT = "#,##0.00"
QUANTITY_FORMAT = "#,##0.###"

FLAT_HEADERS = [
    "Category",
    "Sub Category 1",
    "Sub Category 2",
    "Item Code",
    "Description",
    "Quantity",
    "Estimated Rate",
    *(supplier_label(key) for key in SUPPLIER_KEYS),
]
HIERARCHY_HEADERS = ["Category / Item", "Level", "Quantity", "Estimated Rate", *(supplier_label(key) for key in SUPPLIER_KEYS)]

_RGB_PATTERN = re.compile(r"rgb\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)")


def rgb_to_hex(css_color: str) -> str:
    """``rgb(137, 245, 137)`` or ``#89f589`` -> ``FF89F589`` for openpyxl fills."""
    match = _RGB_PATTERN.fullmatch(css_color.strip())
    if match:
        red, green, blue = (int(part) for part in match.groups())
        return f"FF{red:02X}{green:02X}{blue:02X}"
    value = css_color.strip().lstrip("#")
    if len(value) == 6:
        return f"FF{value.upper()}"
    raise ValueError(f"Unsupported colour: {css_color}")


def _style_sheet(ws, col_widths: list[int], header_color: str) -> None:
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len("" if val is None else str(val)) + 2))
    return widths


def _paint_suppliers(ws, row: BomRow, row_number: int, first_supplier_col: int) -> None:
    for offset, key in enumerate(SUPPLIER_KEYS):
        value = row.suppliers.get(key)
        cell = ws.cell(row_number, first_supplier_col + offset)
        cell.number_format = RATE_FORMAT
        if value is None:
            continue
        color = calculate_heatmap_color(value, row)
        cell.fill = PatternFill("solid", fgColor=rgb_to_hex(color.background_color))
        cell.font = Font(color=rgb_to_hex(color.text_color))


def _write_flat_sheet(ws, rows: Sequence[BomRow]) -> None:
    ws.title = HEATMAP_SHEET
    ws.append(FLAT_HEADERS)
    rows_for_width: list[list] = [FLAT_HEADERS]
    for row in rows:
        values = [
            row.category,
            row.sub_category_1,
            row.sub_category_2,
            row.item_code,
            row.description,
            row.quantity,
            row.estimated_rate,
            *(row.suppliers.get(key) for key in SUPPLIER_KEYS),
        ]
        ws.append(values)
        rows_for_width.append(values)
        last = ws.max_row
        ws.cell(last, 6).number_format = QUANTITY_FORMAT
        ws.cell(last, 7).number_format = RATE_FORMAT
        _paint_suppliers(ws, row, last, 8)
    _style_sheet(ws, _infer_col_widths(rows_for_width), "1565C0")


def _write_hierarchy_sheet(ws, tree: Sequence[BomRow]) -> None:
    ws.append(HIERARCHY_HEADERS)
    rows_for_width: list[list] = [HIERARCHY_HEADERS]
    for node, depth in iter_tree(tree):
        values = [
            display_name(node),
            node.level,
            node.quantity,
            node.estimated_rate,
            *(node.suppliers.get(key) for key in SUPPLIER_KEYS),
        ]
        ws.append(values)
        rows_for_width.append(["  " * depth + str(values[0]), *values[1:]])
        last = ws.max_row
        name_cell = ws.cell(last, 1)
        name_cell.alignment = Alignment(indent=depth)
        if node.is_aggregate:
            name_cell.font = Font(bold=True)
        ws.cell(last, 3).number_format = QUANTITY_FORMAT
        ws.cell(last, 4).number_format = RATE_FORMAT
        _paint_suppliers(ws, node, last, 5)
    _style_sheet(ws, _infer_col_widths(rows_for_width), "4CAF50")


def build_heatmap_workbook(rows: Sequence[BomRow], *, tree: Optional[Sequence[BomRow]] = None):
    """Flat heatmap sheet, plus the hierarchy sheet when ``tree`` is given."""
    wb = openpyxl.Workbook()
    _write_flat_sheet(wb.active, rows)
    if tree is not None:
        _write_hierarchy_sheet(wb.create_sheet(HIERARCHY_SHEET), tree)
    return wb


def heatmap_workbook_bytes(rows: Sequence[BomRow], *, tree: Optional[Sequence[BomRow]] = None) -> bytes:
    buffer = io.BytesIO()
    build_heatmap_workbook(rows, tree=tree).save(buffer)
    return buffer.getvalue()


def write_heatmap_workbook(
    rows: Sequence[BomRow],
    output_path: Path,
    *,
    tree: Optional[Sequence[BomRow]] = None,
) -> Path:
    output_path = Path(output_path)
    wb = build_heatmap_workbook(rows, tree=tree)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(suffix=".xlsx", dir=output_path.parent)
    os.close(fd)
    try:
        wb.save(tmp_name)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info("Wrote heatmap workbook %s (%d rows)", output_path, len(rows))
    return output_path
