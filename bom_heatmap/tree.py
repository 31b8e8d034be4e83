"""
tree.py: Category -> Sub Category 1 -> Sub Category 2 -> item hierarchy.

build_tree() folds flat sanitized rows into aggregate nodes whose quantity is
the sum of their descendants and whose rates are quantity-weighted averages.
Rows that report a rate as absent but still contribute quantity count as rate
0 in the estimated-rate average, which pulls it down. Supplier averages are
weighted by the node's total quantity rather than a per-supplier tally.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Collection, Iterable, Iterator, Optional

from bom_heatmap.models import SUPPLIER_KEYS, BomRow, empty_suppliers

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


def _weighted(current: Optional[float], total_qty: float, value: float, qty: float) -> Optional[float]:
    if total_qty <= 0:
        return None
    return ((current or 0) * (total_qty - qty) + value * qty) / total_qty


def aggregate_row_into(node: BomRow, row: BomRow) -> None:
    """Fold one leaf row into an aggregate node: quantity first, then the rates."""
    if row.quantity is not None:
        node.quantity = (node.quantity or 0) + row.quantity

    if row.quantity is None or row.quantity <= 0:
        return
    total_qty = node.quantity or 0

    if row.estimated_rate is not None:
        node.estimated_rate = _weighted(node.estimated_rate, total_qty, row.estimated_rate, row.quantity)

    for key in SUPPLIER_KEYS:
        rate = row.suppliers.get(key)
        if rate is None:
            continue
        current = node.suppliers.get(key)
        if current is None:
            node.suppliers[key] = rate
        else:
            node.suppliers[key] = _weighted(current, total_qty, rate, row.quantity)


def _new_aggregate(row: BomRow, label: str, node_id: str, level: int) -> BomRow:
    return replace(
        row,
        item_code=label,
        material=label,
        description=label,
        quantity=None,
        estimated_rate=None,
        suppliers=empty_suppliers(),
        id=node_id,
        level=level,
        children=[],
    )


def build_tree(rows: Iterable[BomRow]) -> list[BomRow]:
    categories: dict[str, BomRow] = {}
    sub_categories_1: dict[str, BomRow] = {}
    sub_categories_2: dict[str, BomRow] = {}

    for row in rows:
        category_key = row.category or UNCATEGORIZED
        category_node = categories.get(category_key)
        if category_node is None:
            category_node = _new_aggregate(row, category_key, f"category-{category_key}", 0)
            categories[category_key] = category_node
        aggregate_row_into(category_node, row)
        parent = category_node

        if row.sub_category_1:
            sub1_key = f"{category_key}-{row.sub_category_1}"
            sub1_node = sub_categories_1.get(sub1_key)
            if sub1_node is None:
                sub1_node = _new_aggregate(row, row.sub_category_1, f"subcat1-{sub1_key}", 1)
                sub_categories_1[sub1_key] = sub1_node
                category_node.children.append(sub1_node)
            aggregate_row_into(sub1_node, row)
            parent = sub1_node

            if row.sub_category_2:
                sub2_key = f"{sub1_key}-{row.sub_category_2}"
                sub2_node = sub_categories_2.get(sub2_key)
                if sub2_node is None:
                    sub2_node = _new_aggregate(row, row.sub_category_2, f"subcat2-{sub2_key}", 2)
                    sub_categories_2[sub2_key] = sub2_node
                    sub1_node.children.append(sub2_node)
                aggregate_row_into(sub2_node, row)
                parent = sub2_node

        leaf = row.copy()
        leaf.id = f"item-{row.id or row.item_code}"
        leaf.level = parent.level + 1
        leaf.children = None
        parent.children.append(leaf)

    logger.debug(
        "Built tree: %d categories, %d sub-categories, %d sub-sub-categories",
        len(categories),
        len(sub_categories_1),
        len(sub_categories_2),
    )
    return list(categories.values())


def iter_tree(nodes: Iterable[BomRow], depth: int = 0) -> Iterator[tuple[BomRow, int]]:
    for node in nodes:
        yield node, depth
        if node.children:
            yield from iter_tree(node.children, depth + 1)


def collect_node_ids(nodes: Iterable[BomRow]) -> list[str]:
    return [node.id for node, _ in iter_tree(nodes) if node.id is not None]


def collect_aggregate_ids(nodes: Iterable[BomRow]) -> list[str]:
    return [node.id for node, _ in iter_tree(nodes) if node.is_aggregate and node.id is not None]


def flatten_tree(nodes: Iterable[BomRow], expanded_ids: Collection[str]) -> list[BomRow]:
    """Pre-order list of visible nodes: children appear only under expanded parents."""
    flat: list[BomRow] = []
    for node in nodes:
        flat.append(node)
        if node.children and node.id in expanded_ids:
            flat.extend(flatten_tree(node.children, expanded_ids))
    return flat


def has_hierarchy(nodes: list[BomRow]) -> bool:
    return bool(nodes) and nodes[0].level is not None
