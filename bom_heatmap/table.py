"""View-model for the BOM table: columns, search, sort, paging and heatmap styles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Collection, Iterable, Optional, Sequence

import pandas as pd

from bom_heatmap.config import DEFAULT_PAGE_SIZE, PAGE_SIZE_OPTIONS, PREVIEW_ROW_COUNT, TREE_INDENT_PER_LEVEL
from bom_heatmap.heatmap import calculate_heatmap_color, format_supplier_rate
from bom_heatmap.models import SUPPLIER_KEYS, BomRow
from bom_heatmap.numbers import format_currency, format_quantity

ITEM_COLUMN = "item"
ESTIMATED_RATE_COLUMN = "estimated_rate"
QUANTITY_COLUMN = "quantity"

SHOW_ALL_COLUMNS: frozenset[str] = frozenset()
ONLY_FIRST_SUPPLIER: frozenset[str] = frozenset(SUPPLIER_KEYS[1:])


@dataclass(frozen=True)
class Column:
    id: str
    label: str
    sortable: bool = True
    hideable: bool = True


def supplier_label(key: str) -> str:
    return key.replace(" (Rate)", "")


COLUMNS: tuple[Column, ...] = (
    Column(ITEM_COLUMN, "Category / Item", sortable=True, hideable=False),
    *(Column(key, supplier_label(key)) for key in SUPPLIER_KEYS),
    Column(ESTIMATED_RATE_COLUMN, "Est. Rate"),
    Column(QUANTITY_COLUMN, "Qty"),
)
COLUMNS_BY_ID = {column.id: column for column in COLUMNS}
TREE_VIEW_COLUMN_IDS = (ITEM_COLUMN, ESTIMATED_RATE_COLUMN, QUANTITY_COLUMN)


@dataclass(frozen=True)
class Page:
    rows: list[BomRow]
    page_index: int
    page_size: int
    page_count: int
    total: int

    @property
    def start(self) -> int:
        return self.page_index * self.page_size + 1 if self.total else 0

    @property
    def end(self) -> int:
        return min((self.page_index + 1) * self.page_size, self.total)

    @property
    def label(self) -> str:
        return f"Showing {self.start} to {self.end} of {self.total} results"


def display_name(row: BomRow) -> str:
    if row.is_aggregate:
        return row.item_code
    return row.description or row.material or row.item_code


def secondary_text(row: BomRow) -> Optional[str]:
    if row.is_aggregate:
        return None
    name = display_name(row)
    return row.item_code if row.item_code and row.item_code != name else None


def indent_px(row: BomRow) -> int:
    return (row.level or 0) * TREE_INDENT_PER_LEVEL


def columns_for_view(tree_view: bool = False) -> list[Column]:
    if tree_view:
        return [COLUMNS_BY_ID[column_id] for column_id in TREE_VIEW_COLUMN_IDS]
    return list(COLUMNS)


def visible_columns(hidden: Collection[str] = SHOW_ALL_COLUMNS, *, tree_view: bool = False) -> list[Column]:
    return [column for column in columns_for_view(tree_view) if not column.hideable or column.id not in hidden]


def frozen_columns(columns: Sequence[Column], freeze_column_id: Optional[str]) -> list[str]:
    """Ids of the columns pinned to the left of ``freeze_column_id``."""
    ids = [column.id for column in columns]
    if not freeze_column_id or freeze_column_id not in ids:
        return []
    return ids[: ids.index(freeze_column_id)]


def filter_rows(rows: Iterable[BomRow], query: Optional[str]) -> list[BomRow]:
    rows = list(rows)
    needle = (query or "").lower()
    if not needle:
        return rows
    return [
        row
        for row in rows
        if any(
            needle in (value or "").lower()
            for value in (
                row.item_code,
                row.material,
                row.category,
                row.sub_category_1,
                row.sub_category_2,
                row.description,
            )
        )
    ]


def column_value(row: BomRow, column_id: str) -> Any:
    if column_id == ITEM_COLUMN:
        return display_name(row)
    if column_id == ESTIMATED_RATE_COLUMN:
        return row.estimated_rate
    if column_id == QUANTITY_COLUMN:
        return row.quantity
    if column_id in SUPPLIER_KEYS:
        return row.suppliers.get(column_id)
    raise KeyError(f"Unknown column: {column_id}")


def sort_rows(rows: Iterable[BomRow], column_id: Optional[str], descending: bool = False) -> list[BomRow]:
    """Stable sort on one column; absent values stay at the bottom in both directions."""
    rows = list(rows)
    if not column_id:
        return rows
    if column_id == ITEM_COLUMN:
        return sorted(rows, key=lambda row: display_name(row).lower(), reverse=descending)
    present = [row for row in rows if column_value(row, column_id) is not None]
    absent = [row for row in rows if column_value(row, column_id) is None]
    present.sort(key=lambda row: column_value(row, column_id), reverse=descending)
    return present + absent


def paginate(rows: Sequence[BomRow], page_index: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    if page_size not in PAGE_SIZE_OPTIONS:
        raise ValueError(f"Page size must be one of {', '.join(str(size) for size in PAGE_SIZE_OPTIONS)}")
    total = len(rows)
    page_count = max(1, -(-total // page_size))
    page_index = min(max(page_index, 0), page_count - 1)
    offset = page_index * page_size
    return Page(
        rows=list(rows[offset : offset + page_size]),
        page_index=page_index,
        page_size=page_size,
        page_count=page_count,
        total=total,
    )


def preview_rows(rows: Sequence[BomRow], limit: int = PREVIEW_ROW_COUNT) -> list[BomRow]:
    return list(rows[:limit])


def item_label(row: BomRow, expanded_ids: Collection[str] = ()) -> str:
    indent = "  " * (row.level or 0)
    if row.is_aggregate:
        marker = "▾ " if row.id in expanded_ids else "▸ "
        return f"{indent}{marker}{display_name(row)}"
    secondary = secondary_text(row)
    suffix = f" · {secondary}" if secondary else ""
    return f"{indent}{display_name(row)}{suffix}"


def format_cell(row: BomRow, column_id: str, expanded_ids: Collection[str] = ()) -> str:
    if column_id == ITEM_COLUMN:
        return item_label(row, expanded_ids)
    if column_id == ESTIMATED_RATE_COLUMN:
        return format_currency(row.estimated_rate)
    if column_id == QUANTITY_COLUMN:
        return format_quantity(row.quantity)
    return format_supplier_rate(row.suppliers.get(column_id), row.estimated_rate)


def rows_to_frame(
    rows: Sequence[BomRow],
    columns: Optional[Sequence[Column]] = None,
    expanded_ids: Collection[str] = (),
) -> pd.DataFrame:
    columns = list(columns) if columns is not None else list(COLUMNS)
    records = [{column.label: format_cell(row, column.id, expanded_ids) for column in columns} for row in rows]
    return pd.DataFrame(records, columns=[column.label for column in columns], index=_frame_index(rows))


def cell_style(row: BomRow, column_id: str) -> str:
    if column_id in SUPPLIER_KEYS:
        color = calculate_heatmap_color(row.suppliers.get(column_id), row)
        return f"background-color: {color.background_color}; color: {color.text_color}"
    if column_id != ITEM_COLUMN:
        return ""
    styles = ["font-weight: 600"] if row.is_aggregate else []
    if indent_px(row):
        styles.append(f"padding-left: {indent_px(row)}px")
    return "; ".join(styles)


def heatmap_styles(rows: Sequence[BomRow], columns: Optional[Sequence[Column]] = None) -> pd.DataFrame:
    """CSS per cell, shaped like rows_to_frame(), for ``Styler.apply(..., axis=None)``."""
    columns = list(columns) if columns is not None else list(COLUMNS)
    records = [{column.label: cell_style(row, column.id) for column in columns} for row in rows]
    return pd.DataFrame(records, columns=[column.label for column in columns], index=_frame_index(rows))


def style_frame(
    rows: Sequence[BomRow],
    columns: Optional[Sequence[Column]] = None,
    expanded_ids: Collection[str] = (),
):
    frame = rows_to_frame(rows, columns, expanded_ids)
    styles = heatmap_styles(rows, columns)
    return frame.style.apply(lambda _: styles, axis=None)


def _frame_index(rows: Sequence[BomRow]) -> pd.Index:
    return pd.Index([row.id or str(position) for position, row in enumerate(rows)], name="id")
