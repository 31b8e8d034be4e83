from __future__ import annotations

import unittest
from pathlib import Path

from bom_heatmap.loader import parse_csv_file
from bom_heatmap.models import BomRow
from bom_heatmap.tree import (
    aggregate_row_into,
    build_tree,
    collect_aggregate_ids,
    collect_node_ids,
    flatten_tree,
    has_hierarchy,
)

ROOT = Path(__file__).resolve().parents[1]
SAMPLE_CSV = ROOT / "sample-data" / "sample_bom.csv"


def leaf(row_id: str, category: str = "Electrical", sub1: str = "", sub2: str = "", **values) -> BomRow:
    return BomRow(
        id=row_id,
        category=category,
        sub_category_1=sub1,
        sub_category_2=sub2,
        item_code=values.pop("item_code", row_id.upper()),
        material=values.pop("material", row_id.upper()),
        description=values.pop("description", f"Item {row_id}"),
        **values,
    )


class AggregationTests(unittest.TestCase):
    def test_quantity_weighted_average_rate(self):
        tree = build_tree(
            [
                leaf("row-0", quantity=10.0, estimated_rate=100.0),
                leaf("row-1", quantity=20.0, estimated_rate=200.0),
            ]
        )
        category = tree[0]
        self.assertEqual(category.quantity, 30)
        self.assertAlmostEqual(category.estimated_rate, 166.67, places=2)

    def test_first_supplier_contribution_is_unweighted(self):
        node = BomRow(children=[])
        aggregate_row_into(node, leaf("a", quantity=5.0, suppliers={"Supplier 1 (Rate)": 40.0}))
        self.assertEqual(node.suppliers["Supplier 1 (Rate)"], 40.0)
        aggregate_row_into(node, leaf("b", quantity=15.0, suppliers={"Supplier 1 (Rate)": 80.0}))
        self.assertAlmostEqual(node.suppliers["Supplier 1 (Rate)"], (40 * 5 + 80 * 15) / 20)

    def test_absent_rate_still_dilutes_weighted_average(self):
        tree = build_tree(
            [
                leaf("row-0", quantity=10.0, estimated_rate=None),
                leaf("row-1", quantity=10.0, estimated_rate=100.0),
            ]
        )
        self.assertEqual(tree[0].quantity, 20)
        self.assertAlmostEqual(tree[0].estimated_rate, 50.0)

    def test_supplier_average_uses_node_quantity(self):
        tree = build_tree(
            [
                leaf("row-0", quantity=10.0, suppliers={"Supplier 2 (Rate)": 100.0}),
                leaf("row-1", quantity=30.0),
                leaf("row-2", quantity=10.0, suppliers={"Supplier 2 (Rate)": 200.0}),
            ]
        )
        self.assertAlmostEqual(tree[0].suppliers["Supplier 2 (Rate)"], (100 * 40 + 200 * 10) / 50)

    def test_rows_without_positive_quantity_do_not_touch_rates(self):
        tree = build_tree(
            [
                leaf("row-0", quantity=None, estimated_rate=500.0, suppliers={"Supplier 1 (Rate)": 9.0}),
                leaf("row-1", quantity=0.0, estimated_rate=700.0),
            ]
        )
        category = tree[0]
        self.assertEqual(category.quantity, 0)
        self.assertIsNone(category.estimated_rate)
        self.assertIsNone(category.suppliers["Supplier 1 (Rate)"])

    def test_aggregation_applies_at_every_level(self):
        tree = build_tree(
            [
                leaf("row-0", sub1="Cables", sub2="Copper", quantity=10.0, estimated_rate=100.0),
                leaf("row-1", sub1="Cables", quantity=20.0, estimated_rate=200.0),
            ]
        )
        category = tree[0]
        cables = category.children[0]
        copper = cables.children[0]
        self.assertEqual(category.quantity, 30)
        self.assertEqual(cables.quantity, 30)
        self.assertEqual(copper.quantity, 10)
        self.assertEqual(copper.estimated_rate, 100)


class StructureTests(unittest.TestCase):
    def test_levels_and_ids(self):
        tree = build_tree(
            [
                leaf("row-0", sub1="Cables", sub2="Copper", quantity=1.0),
                leaf("row-1", sub1="Cables", quantity=1.0),
                leaf("row-2", quantity=1.0),
            ]
        )
        category = tree[0]
        self.assertEqual(category.id, "category-Electrical")
        self.assertEqual(category.level, 0)
        self.assertEqual(category.item_code, "Electrical")
        self.assertEqual(category.description, "Electrical")

        cables, direct_leaf = category.children
        self.assertEqual(cables.id, "subcat1-Electrical-Cables")
        self.assertEqual(cables.level, 1)
        self.assertEqual(direct_leaf.id, "item-row-2")
        self.assertEqual(direct_leaf.level, 1)
        self.assertIsNone(direct_leaf.children)

        copper, cable_leaf = cables.children
        self.assertEqual(copper.id, "subcat2-Electrical-Cables-Copper")
        self.assertEqual(copper.level, 2)
        self.assertEqual(cable_leaf.id, "item-row-1")
        self.assertEqual(cable_leaf.level, 2)
        self.assertEqual(copper.children[0].id, "item-row-0")
        self.assertEqual(copper.children[0].level, 3)

    def test_blank_category_groups_under_uncategorized(self):
        tree = build_tree([leaf("row-0", category="", quantity=1.0)])
        self.assertEqual(tree[0].id, "category-Uncategorized")
        self.assertEqual(tree[0].item_code, "Uncategorized")

    def test_second_sub_category_ignored_without_first(self):
        tree = build_tree([leaf("row-0", sub2="Orphan", quantity=1.0)])
        self.assertEqual(tree[0].children[0].id, "item-row-0")
        self.assertEqual(tree[0].children[0].level, 1)

    def test_same_sub_category_name_in_two_categories_gets_distinct_ids(self):
        tree = build_tree(
            [
                leaf("row-0", category="Electrical", sub1="General"),
                leaf("row-1", category="Plumbing", sub1="General"),
            ]
        )
        ids = [tree[0].children[0].id, tree[1].children[0].id]
        self.assertEqual(ids, ["subcat1-Electrical-General", "subcat1-Plumbing-General"])
        all_ids = collect_node_ids(tree)
        self.assertEqual(len(all_ids), len(set(all_ids)))

    def test_order_is_first_seen_for_groups_and_input_for_leaves(self):
        tree = build_tree(
            [
                leaf("row-0", category="B"),
                leaf("row-1", category="A"),
                leaf("row-2", category="B"),
            ]
        )
        self.assertEqual([node.item_code for node in tree], ["B", "A"])
        self.assertEqual([child.id for child in tree[0].children], ["item-row-0", "item-row-2"])

    def test_leaves_are_copies_of_input_rows(self):
        rows = [leaf("row-0", quantity=4.0)]
        tree = build_tree(rows)
        copy = tree[0].children[0]
        self.assertIsNot(copy, rows[0])
        copy.suppliers["Supplier 1 (Rate)"] = 99.0
        self.assertIsNone(rows[0].suppliers["Supplier 1 (Rate)"])
        self.assertEqual(rows[0].id, "row-0")
        self.assertIsNone(rows[0].level)

    def test_leaf_id_falls_back_to_item_code(self):
        row = leaf("x", quantity=1.0)
        row.id = None
        tree = build_tree([row])
        self.assertEqual(tree[0].children[0].id, "item-X")

    def test_empty_input(self):
        self.assertEqual(build_tree([]), [])
        self.assertFalse(has_hierarchy([]))


class FlattenTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.tree = build_tree(parse_csv_file(SAMPLE_CSV).data)

    def test_sample_categories_in_first_seen_order(self):
        self.assertEqual([node.item_code for node in self.tree], ["Electrical", "Plumbing", "Civil", "HVAC"])
        self.assertTrue(has_hierarchy(self.tree))

    def test_sample_electrical_rollup(self):
        electrical = self.tree[0]
        self.assertEqual(electrical.quantity, 170)
        self.assertAlmostEqual(electrical.estimated_rate, (430 * 150 + 350 * 20) / 170)
        self.assertAlmostEqual(electrical.suppliers["Supplier 4 (Rate)"], (48 * 150 + 350 * 20) / 170)

    def test_collapsed_shows_only_categories(self):
        self.assertEqual(flatten_tree(self.tree, set()), self.tree)

    def test_expanding_one_category_reveals_its_children_only(self):
        flat = flatten_tree(self.tree, {"category-Plumbing"})
        self.assertEqual(
            [node.id for node in flat],
            [
                "category-Electrical",
                "category-Plumbing",
                "subcat1-Plumbing-Pipes",
                "item-row-4",
                "category-Civil",
                "category-HVAC",
            ],
        )

    def test_expand_all_lists_every_node_pre_order(self):
        flat = flatten_tree(self.tree, set(collect_aggregate_ids(self.tree)))
        self.assertEqual([node.id for node in flat], collect_node_ids(self.tree))
        self.assertEqual(len(flat), 4 + 4 + 2 + 7)


if __name__ == "__main__":
    unittest.main()
