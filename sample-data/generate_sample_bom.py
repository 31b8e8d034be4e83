#!/usr/bin/env python3
"""
Generates sample-data/sample_bom.csv, a small bill of materials covering the
importer's edge cases:

  - thousands separators in quoted numbers ("1,200")
  - a missing supplier quote
  - a row where every supplier quotes the same rate
  - a fully blank record (skipped, but still counted for row ids)
  - a negative rate (warned about and cleared)
  - a blank description (falls back to the item code)

Run: python sample-data/generate_sample_bom.py
"""

import csv
from pathlib import Path

OUT = Path(__file__).parent / "sample_bom.csv"

HEADERS = [
    "Category",
    "Sub Category 1",
    "Sub Category 2",
    "Item Code",
    "Description",
    "Quantity",
    "Estimated Rate",
    "Supplier 1 (Rate)",
    "Supplier 2 (Rate)",
    "Supplier 3 (Rate)",
    "Supplier 4 (Rate)",
    "Supplier 5 (Rate)",
]

ROWS = [
    ["Electrical", "Cables", "Copper", "EL-001", "2.5 sq mm copper cable", "100", "45", "45", "50", "55", "48", "52"],
    ["Electrical", "Cables", "Copper", "EL-002", "4 sq mm copper cable", "50", "1,200", "1150", "1250", "1300", "", "1180"],
    ["Electrical", "Switchgear", "", "EL-010", "32A MCB", "20", "350", "340", "360", "355", "350", "345"],
    ["Plumbing", "Pipes", "", "PL-001", "25mm CPVC pipe", "200", "120", "110", "125", "130", "118", ""],
    ["Plumbing", "", "", "PL-050", "Ball valve", "10", "800", "800", "800", "800", "800", "800"],
    ["", "", "", "", "", "", "", "", "", "", "", ""],
    ["Civil", "", "", "CV-001", "Cement bag", "500", "380", "-5", "390", "385", "", ""],
    ["HVAC", "Ducting", "Insulation", "HV-001", "", "30", "2500", "2400", "2600", "", "2550", "2450"],
]


def main() -> None:
    with OUT.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle, lineterminator="\n")
        writer.writerow(HEADERS)
        writer.writerows(ROWS)
    print(f"Wrote {OUT}")


if __name__ == "__main__":
    main()
