from __future__ import annotations

import asyncio
import tempfile
import unittest
from pathlib import Path

from bom_heatmap.loader import (
    EMPTY_FILE_ERROR,
    EXPECTED_HEADERS_MESSAGE,
    decode_csv_bytes,
    parse_csv_bytes,
    parse_csv_file,
    parse_csv_file_async,
    parse_csv_text,
)
from bom_heatmap.models import REQUIRED_HEADERS

ROOT = Path(__file__).resolve().parents[1]
SAMPLE_CSV = ROOT / "sample-data" / "sample_bom.csv"
HEADER_LINE = ",".join(REQUIRED_HEADERS)


def bom_text(*lines: str, header: str = HEADER_LINE) -> str:
    return "\n".join([header, *lines]) + "\n"


class SampleFileTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.result = parse_csv_file(SAMPLE_CSV)

    def test_sample_imports_with_one_warning(self):
        self.assertTrue(self.result.success, self.result.errors)
        self.assertEqual(len(self.result.data), 7)
        self.assertEqual(self.result.errors, ["Row 7: Invalid Supplier 1 (Rate) for item CV-001: -5"])

    def test_ids_follow_raw_record_index(self):
        ids = [row.id for row in self.result.data]
        self.assertEqual(ids, ["row-0", "row-1", "row-2", "row-3", "row-4", "row-6", "row-7"])

    def test_numbers_are_parsed_and_sanitized(self):
        rows = {row.item_code: row for row in self.result.data}
        self.assertEqual(rows["EL-002"].estimated_rate, 1200)
        self.assertIsNone(rows["EL-002"].suppliers["Supplier 4 (Rate)"])
        self.assertIsNone(rows["CV-001"].suppliers["Supplier 1 (Rate)"])
        self.assertEqual(rows["CV-001"].suppliers["Supplier 2 (Rate)"], 390)

    def test_material_mirrors_item_code_and_description_falls_back(self):
        rows = {row.item_code: row for row in self.result.data}
        self.assertEqual(rows["EL-001"].material, "EL-001")
        self.assertEqual(rows["HV-001"].description, "HV-001")


class ParseTextTests(unittest.TestCase):
    def test_empty_text_fails(self):
        result = parse_csv_text("")
        self.assertFalse(result.success)
        self.assertEqual(result.data, [])
        self.assertEqual(result.errors, [EMPTY_FILE_ERROR])

    def test_header_only_fails(self):
        result = parse_csv_text(bom_text())
        self.assertFalse(result.success)
        self.assertEqual(result.errors, [EMPTY_FILE_ERROR])

    def test_missing_header_blocks_all_rows(self):
        header = ",".join(h for h in REQUIRED_HEADERS if h != "Supplier 5 (Rate)")
        result = parse_csv_text(bom_text("Civil,,,CV-1,Cement,10,5,5,6,7,8", header=header))
        self.assertFalse(result.success)
        self.assertEqual(result.data, [])
        self.assertEqual(
            result.errors,
            ["Missing required headers: Supplier 5 (Rate)", EXPECTED_HEADERS_MESSAGE],
        )
        self.assertTrue(EXPECTED_HEADERS_MESSAGE.startswith("Expected headers: Category, Sub Category 1,"))

    def test_header_order_does_not_matter(self):
        header = ",".join(reversed(REQUIRED_HEADERS))
        result = parse_csv_text(bom_text("1,2,3,4,5,100,10,Cable,A-1,,,Electrical", header=header))
        self.assertTrue(result.success, result.errors)
        row = result.data[0]
        self.assertEqual(row.category, "Electrical")
        self.assertEqual(row.item_code, "A-1")
        self.assertEqual(row.quantity, 10)
        self.assertEqual(row.estimated_rate, 100)
        self.assertEqual(row.suppliers["Supplier 1 (Rate)"], 5)

    def test_padded_headers_are_accepted(self):
        header = ",".join(f" {h} " for h in REQUIRED_HEADERS)
        result = parse_csv_text(bom_text("Civil,,,CV-1,Cement,10,5,5,6,7,8,9", header=header))
        self.assertTrue(result.success, result.errors)

    def test_blank_records_are_skipped_without_renumbering(self):
        result = parse_csv_text(
            bom_text(
                "Civil,,,CV-1,Cement,10,5,5,6,7,8,9",
                ",,,,,,,,,,,",
                " , ,  ,,,,,,,,, ",
                "Civil,,,CV-2,Sand,3,2,2,2,2,2,2",
            )
        )
        self.assertTrue(result.success, result.errors)
        self.assertEqual([row.id for row in result.data], ["row-0", "row-3"])
        self.assertEqual(result.errors, [])

    def test_empty_lines_are_ignored(self):
        result = parse_csv_text(bom_text("", "Civil,,,CV-1,Cement,10,5,5,6,7,8,9", ""))
        self.assertTrue(result.success)
        self.assertEqual([row.id for row in result.data], ["row-0"])

    def test_text_is_trimmed_and_numbers_lenient(self):
        result = parse_csv_text(bom_text('  Civil , Bulk ,,  CV-1 , Cement ,"1,000", 5.5 ,abc,,7kg,8,9'))
        row = result.data[0]
        self.assertEqual(row.category, "Civil")
        self.assertEqual(row.sub_category_1, "Bulk")
        self.assertEqual(row.item_code, "CV-1")
        self.assertEqual(row.quantity, 1000)
        self.assertEqual(row.estimated_rate, 5.5)
        self.assertIsNone(row.suppliers["Supplier 1 (Rate)"])
        self.assertIsNone(row.suppliers["Supplier 2 (Rate)"])
        self.assertEqual(row.suppliers["Supplier 3 (Rate)"], 7)

    def test_validation_problems_are_warnings_not_failures(self):
        result = parse_csv_text(bom_text("Civil,,,,Cement,-10,5,5,6,7,8,9"))
        self.assertTrue(result.success)
        self.assertEqual(len(result.data), 1)
        self.assertEqual(
            result.errors,
            ["Row 1: Invalid quantity for item : -10, Item Code is required"],
        )
        row = result.data[0]
        self.assertEqual(row.item_code, "Unknown")
        self.assertIsNone(row.quantity)

    def test_infinite_numbers_are_warned_about_and_cleared(self):
        result = parse_csv_text(bom_text("B,General,Sub,X3,,1e400,Infinity,-3,1,2,,"))
        self.assertTrue(result.success)
        self.assertEqual(
            result.errors,
            [
                "Row 1: Invalid quantity for item X3: inf, "
                "Invalid estimated rate for item X3: inf, "
                "Invalid Supplier 1 (Rate) for item X3: -3"
            ],
        )
        row = result.data[0]
        self.assertIsNone(row.quantity)
        self.assertIsNone(row.estimated_rate)
        self.assertIsNone(row.suppliers["Supplier 1 (Rate)"])
        self.assertEqual(row.suppliers["Supplier 2 (Rate)"], 1)

    def test_long_and_short_records_are_kept_with_warnings(self):
        result = parse_csv_text(
            bom_text(
                "Civil,,,CV-1,Cement,10,5,5,6,7,8,9,extra",
                "Civil,,,CV-2,Sand",
            )
        )
        self.assertTrue(result.success)
        self.assertEqual([row.item_code for row in result.data], ["CV-1", "CV-2"])
        self.assertEqual(result.data[0].suppliers["Supplier 5 (Rate)"], 9)
        self.assertIsNone(result.data[1].quantity)
        self.assertEqual(
            result.errors,
            [
                "Row 1: Too many fields: expected 12 fields but parsed 13",
                "Row 2: Too few fields: expected 12 fields but parsed 5",
            ],
        )


class DecodeTests(unittest.TestCase):
    def test_byte_order_mark_and_nul_bytes_are_removed(self):
        raw = ("\ufeff" + bom_text("Civil,,,CV-1,Cement,10,5,5,6,7,8,9")).encode("utf-8").replace(b"Cement", b"Cem\x00ent")
        text, _ = decode_csv_bytes(raw)
        self.assertTrue(text.startswith("Category,"))
        self.assertIn("Cement", text)
        result = parse_csv_bytes(raw)
        self.assertTrue(result.success, result.errors)
        self.assertEqual(result.data[0].category, "Civil")

    def test_latin1_bytes_decode(self):
        raw = bom_text("Civil,,,CV-1,Ciment lég\xe8re,10,5,5,6,7,8,9").encode("latin-1")
        result = parse_csv_bytes(raw)
        self.assertTrue(result.success, result.errors)
        self.assertTrue(result.data[0].description.startswith("Ciment l"))
        self.assertNotIn("\ufffd", result.data[0].description)


class ParseFileTests(unittest.TestCase):
    def test_non_csv_extension_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bom.txt"
            path.write_text(bom_text("Civil,,,CV-1,Cement,10,5,5,6,7,8,9"), encoding="utf-8")
            result = parse_csv_file(path)
        self.assertFalse(result.success)
        self.assertEqual(result.errors, ["Please select a CSV file"])

    def test_missing_file_fails(self):
        result = parse_csv_file(ROOT / "sample-data" / "does_not_exist.csv")
        self.assertFalse(result.success)
        self.assertTrue(result.errors[0].startswith("File not found:"))

    def test_oversized_file_is_rejected_before_parsing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bom.csv"
            path.write_text(bom_text("Civil,,,CV-1,Cement,10,5,5,6,7,8,9"), encoding="utf-8")
            result = parse_csv_file(path, max_bytes=16)
        self.assertFalse(result.success)
        self.assertEqual(result.data, [])
        self.assertTrue(result.errors[0].startswith("File is too large"))

    def test_uppercase_extension_is_accepted(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "BOM.CSV"
            path.write_text(bom_text("Civil,,,CV-1,Cement,10,5,5,6,7,8,9"), encoding="utf-8")
            result = parse_csv_file(path)
        self.assertTrue(result.success, result.errors)

    def test_async_parse_resolves_with_result(self):
        result = asyncio.run(parse_csv_file_async(SAMPLE_CSV))
        self.assertTrue(result.success)
        self.assertEqual(len(result.data), 7)

    def test_async_parse_resolves_failures_instead_of_raising(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.csv"
            path.write_text("", encoding="utf-8")
            result = asyncio.run(parse_csv_file_async(path))
        self.assertFalse(result.success)
        self.assertEqual(result.errors, [EMPTY_FILE_ERROR])


if __name__ == "__main__":
    unittest.main()
