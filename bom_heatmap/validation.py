"""Row-level checks and clean-up applied to every imported BOM record."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from bom_heatmap.models import REQUIRED_HEADERS, SUPPLIER_KEYS, BomRow
from bom_heatmap.numbers import format_plain_number, is_finite_number, is_valid_numeric_range


@dataclass
class HeaderValidation:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    extra: list[str] = field(default_factory=list)


def validate_headers(headers: Iterable[str]) -> HeaderValidation:
    normalized = [str(header).strip() for header in headers]
    missing = [required for required in REQUIRED_HEADERS if required not in normalized]
    # Extra columns are tolerated and only reported for display.
    extra = [header for header in normalized if header not in REQUIRED_HEADERS]
    errors = [f"Missing required headers: {', '.join(missing)}"] if missing else []
    return HeaderValidation(is_valid=not missing, errors=errors, missing=missing, extra=extra)


def _describe(value: float) -> str:
    return format_plain_number(value) if is_finite_number(value) else str(value)


def validate_bom_row(row: BomRow) -> list[str]:
    errors: list[str] = []
    code = row.item_code

    if row.quantity is not None and not is_valid_numeric_range(row.quantity, 0):
        errors.append(f"Invalid quantity for item {code}: {_describe(row.quantity)}")

    if row.estimated_rate is not None and not is_valid_numeric_range(row.estimated_rate, 0):
        errors.append(f"Invalid estimated rate for item {code}: {_describe(row.estimated_rate)}")

    for key in SUPPLIER_KEYS:
        rate = row.suppliers.get(key)
        if rate is not None and not is_valid_numeric_range(rate, 0):
            errors.append(f"Invalid {key} for item {code}: {_describe(rate)}")

    if not (row.item_code or "").strip():
        errors.append("Item Code is required")

    return errors


def _clamp(value: Optional[float]) -> Optional[float]:
    if value is None or not is_finite_number(value) or value < 0:
        return None
    return value


def sanitize_bom_row(row: BomRow) -> BomRow:
    """
    Return a cleaned copy of ``row``.

    Text is trimmed with fallbacks (item code -> "Unknown", material -> item
    code, description -> material). Negative or non-finite numbers become
    None. Running it twice gives the same row.
    """
    item_code = (row.item_code or "").strip()
    material = (row.material or "").strip() or item_code or "Unknown"
    # Falls back to the resolved material so a second pass changes nothing.
    description = (row.description or "").strip() or material
    return replace(
        row,
        item_code=item_code or "Unknown",
        material=material,
        description=description,
        category=(row.category or "").strip(),
        sub_category_1=(row.sub_category_1 or "").strip(),
        sub_category_2=(row.sub_category_2 or "").strip(),
        quantity=_clamp(row.quantity),
        estimated_rate=_clamp(row.estimated_rate),
        suppliers={key: _clamp(row.suppliers.get(key)) for key in SUPPLIER_KEYS},
    )
