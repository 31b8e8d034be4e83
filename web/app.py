from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bom_heatmap.config import PAGE_SIZE_OPTIONS, ConfigError, load_settings
from bom_heatmap.loader import EMPTY_FILE_ERROR, parse_csv_bytes
from bom_heatmap.models import REQUIRED_HEADERS, SUPPLIER_KEYS, BomRow, ParseResult
from bom_heatmap.sources import RemoteSourceError, check_upload, fetch_remote_csv
from bom_heatmap.table import (
    COLUMNS,
    ESTIMATED_RATE_COLUMN,
    ITEM_COLUMN,
    ONLY_FIRST_SUPPLIER,
    QUANTITY_COLUMN,
    SHOW_ALL_COLUMNS,
    filter_rows,
    frozen_columns,
    paginate,
    preview_rows,
    rows_to_frame,
    sort_rows,
    style_frame,
    visible_columns,
)
from bom_heatmap.tree import build_tree, collect_aggregate_ids, flatten_tree, has_hierarchy
from bom_heatmap.workbook import heatmap_workbook_bytes

MISSING_HEADERS_MESSAGE = (
    "Missing required headers. Expected: Category, Sub Category 1, Sub Category 2, Item Code, "
    "Description, Quantity, Estimated Rate, Supplier 1-5 (Rate)"
)
SORTABLE_COLUMNS = [None, *SUPPLIER_KEYS, ESTIMATED_RATE_COLUMN, QUANTITY_COLUMN]
COLUMN_LABELS = {column.id: column.label for column in COLUMNS}


def current_settings():
    try:
        return load_settings()
    except ConfigError as exc:
        st.warning(f"Ignoring invalid settings: {exc}")
        return load_settings(env={})


def ensure_state(default_page_size: int) -> None:
    st.session_state.setdefault("rows", None)
    st.session_state.setdefault("file_name", None)
    st.session_state.setdefault("import_warnings", [])
    st.session_state.setdefault("tree_view", False)
    st.session_state.setdefault("expanded_ids", [])
    st.session_state.setdefault("search", "")
    st.session_state.setdefault("page_size", default_page_size)
    st.session_state.setdefault("hidden_columns", [])
    st.session_state.setdefault("freeze_column", None)
    st.session_state.setdefault("sort_column", None)
    st.session_state.setdefault("sort_descending", False)


def set_rows(rows: list[BomRow], file_name: str, warnings: list[str]) -> None:
    st.session_state["rows"] = rows
    st.session_state["file_name"] = file_name
    st.session_state["import_warnings"] = warnings
    st.session_state["tree_view"] = False
    st.session_state["expanded_ids"] = []
    st.session_state.pop("page_number", None)


def clear_rows() -> None:
    st.session_state["rows"] = None
    st.session_state["file_name"] = None
    st.session_state["import_warnings"] = []
    st.session_state["expanded_ids"] = []
    st.session_state.pop("page_number", None)


def show_import_errors(errors: list[str]) -> None:
    if not errors:
        return
    first = errors[0]
    if first.startswith("Missing required headers"):
        st.error(MISSING_HEADERS_MESSAGE)
    elif first == EMPTY_FILE_ERROR:
        st.error("The file has no data rows. Add at least one BOM line below the header row.")
    for message in errors:
        st.error(message)


def import_bytes(file_name: str, content: bytes, max_bytes: int) -> Optional[ParseResult]:
    guard = check_upload(file_name, len(content), max_bytes=max_bytes)
    if guard:
        show_import_errors(guard)
        return None
    result = parse_csv_bytes(content)
    if not result.success:
        show_import_errors(result.errors)
        return result
    set_rows(result.data, file_name, result.errors)
    return result


def render_upload(settings) -> None:
    st.subheader("Upload BOM")
    st.caption("Required columns: " + ", ".join(REQUIRED_HEADERS))
    upload = st.file_uploader("BOM CSV", type=["csv"], key="upload_input")
    url = st.text_input(
        "Or a public CSV URL",
        key="url_input",
        placeholder="Direct CSV links, or share links from GitHub, Google Sheets/Drive and Dropbox.",
    )
    st.caption(f"Files above {settings.max_file_bytes // (1024 * 1024)} MB are rejected before parsing.")
    if not st.button("Import", type="primary", disabled=not upload and not url.strip()):
        return

    if upload is not None:
        import_bytes(upload.name, upload.getvalue(), settings.max_file_bytes)
    else:
        try:
            file_name, content = fetch_remote_csv(
                url,
                max_bytes=settings.max_file_bytes,
                timeout=settings.remote_timeout_seconds,
            )
        except RemoteSourceError as exc:
            st.error(str(exc))
            return
        import_bytes(file_name, content, settings.max_file_bytes)
    if st.session_state["rows"] is not None:
        st.rerun()


def on_tree_view_change() -> None:
    tree = build_tree(st.session_state["rows"] or [])
    st.session_state["expanded_ids"] = collect_aggregate_ids(tree) if st.session_state["tree_view"] else []
    st.session_state.pop("page_number", None)


def table_rows(rows: list[BomRow], tree: list[BomRow], expanded_ids) -> list[BomRow]:
    """Grouped rows with only expanded groups opened; the flat import when there is nothing to group."""
    return flatten_tree(tree, expanded_ids) if has_hierarchy(tree) else list(rows)


def render_preview(rows: list[BomRow]) -> None:
    with st.expander("Preview", expanded=False):
        st.dataframe(rows_to_frame(preview_rows(rows)), width="stretch")


def render_controls(tree: list[BomRow]) -> None:
    top = st.columns([3, 1, 1, 1])
    top[0].text_input("Search", key="search", placeholder="Item code, material, category or description")
    top[1].toggle("Tree view", key="tree_view", on_change=on_tree_view_change)
    if top[2].button("Expand all", width="stretch"):
        st.session_state["expanded_ids"] = collect_aggregate_ids(tree)
    if top[3].button("Collapse all", width="stretch"):
        st.session_state["expanded_ids"] = []

    labels = {node_id: node_id.split("-", 1)[-1] for node_id in collect_aggregate_ids(tree)}
    st.session_state["expanded_ids"] = [node_id for node_id in st.session_state["expanded_ids"] if node_id in labels]
    st.multiselect(
        "Expanded groups",
        options=list(labels),
        format_func=lambda node_id: labels.get(node_id, node_id),
        key="expanded_ids",
    )

    options = st.columns(4)
    options[0].selectbox(
        "Sort by",
        SORTABLE_COLUMNS,
        format_func=lambda column_id: "None" if column_id is None else COLUMN_LABELS[column_id],
        key="sort_column",
    )
    options[1].toggle("Descending", key="sort_descending")
    preset = options[2].selectbox("Columns", ["Show All Columns", "Show Only First Supplier", "Custom"])
    if preset == "Show All Columns":
        hidden = set(SHOW_ALL_COLUMNS)
    elif preset == "Show Only First Supplier":
        hidden = set(ONLY_FIRST_SUPPLIER)
    else:
        hidden = set(
            st.multiselect(
                "Hidden columns",
                [column.id for column in COLUMNS if column.hideable],
                format_func=lambda column_id: COLUMN_LABELS[column_id],
                key="hidden_columns",
            )
        )
    st.session_state["active_hidden"] = hidden
    options[3].selectbox(
        "Freeze columns left of",
        [None, *[column.id for column in COLUMNS if column.id != ITEM_COLUMN]],
        format_func=lambda column_id: "No freeze" if column_id is None else COLUMN_LABELS[column_id],
        key="freeze_column",
    )


def render_table() -> None:
    rows: list[BomRow] = st.session_state["rows"]
    tree = build_tree(rows)
    render_controls(tree)

    expanded = set(st.session_state["expanded_ids"])
    display = table_rows(rows, tree, expanded)
    display = filter_rows(display, st.session_state["search"])
    display = sort_rows(display, st.session_state["sort_column"], st.session_state["sort_descending"])

    columns = visible_columns(st.session_state.get("active_hidden", set()), tree_view=st.session_state["tree_view"])
    pinned = set(frozen_columns(columns, st.session_state["freeze_column"]))

    pager = st.columns([1, 1, 2])
    pager[0].selectbox("Rows per page", PAGE_SIZE_OPTIONS, key="page_size")
    page_count = paginate(display, 0, st.session_state["page_size"]).page_count
    if st.session_state.get("page_number", 1) > page_count:
        st.session_state["page_number"] = page_count
    page_number = pager[1].number_input("Page", min_value=1, max_value=page_count, key="page_number")
    page = paginate(display, int(page_number) - 1, st.session_state["page_size"])
    pager[2].caption(f"{page.label} · page {page.page_index + 1} of {page.page_count}")

    column_config = {
        column.label: st.column_config.Column(column.label, pinned=True)
        for column in columns
        if column.id in pinned
    }
    st.dataframe(
        style_frame(page.rows, columns, expanded),
        width="stretch",
        hide_index=True,
        column_config=column_config or None,
    )
    st.caption(
        "Supplier cells are coloured per row: green is the cheapest quote, red the dearest. "
        "The percentage compares each quote with the estimated rate. "
        "Group rows carry quantity-weighted rates; expand a group to see its items."
    )


def render_dataset() -> None:
    rows: list[BomRow] = st.session_state["rows"]
    file_name = st.session_state["file_name"]
    header = st.columns([3, 1])
    header[0].subheader(file_name)
    if header[1].button("Upload new file", width="stretch"):
        clear_rows()
        st.rerun()

    st.success(f"{len(rows)} rows parsed from {file_name}")
    warnings = st.session_state["import_warnings"]
    metrics = st.columns(3)
    metrics[0].metric("Rows", len(rows))
    metrics[1].metric("Categories", len(build_tree(rows)))
    metrics[2].metric("Warnings", len(warnings))
    if warnings:
        with st.expander(f"Import warnings ({len(warnings)})", expanded=False):
            for message in warnings:
                st.warning(message)

    render_preview(rows)
    render_table()
    st.download_button(
        "Download heatmap workbook",
        data=heatmap_workbook_bytes(rows, tree=build_tree(rows)),
        file_name=f"{Path(file_name).stem}-heatmap.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        width="stretch",
    )


def set_visuals() -> None:
    st.set_page_config(page_title="bom-heatmap", page_icon="🔥", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        .stApp {
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        }
        .block-container {
            padding-top: 2rem;
            padding-bottom: 2rem;
            max-width: 1400px;
        }
        [data-testid="stDecoration"], [data-testid="stStatusWidget"] {
            display: none !important;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    set_visuals()
    settings = current_settings()
    ensure_state(settings.default_page_size)

    st.title("bom-heatmap")
    st.caption("Upload a bill of materials and compare supplier quotes against the estimated rate.")

    if st.session_state["rows"] is None:
        render_upload(settings)
        return
    render_dataset()


if __name__ == "__main__":
    main()
