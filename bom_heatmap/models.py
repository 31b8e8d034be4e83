"""Row and result types shared by the importer, tree builder and scorer."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

SUPPLIER_KEYS: tuple[str, ...] = (
    "Supplier 1 (Rate)",
    "Supplier 2 (Rate)",
    "Supplier 3 (Rate)",
    "Supplier 4 (Rate)",
    "Supplier 5 (Rate)",
)

REQUIRED_HEADERS: tuple[str, ...] = (
    "Category",
    "Sub Category 1",
    "Sub Category 2",
    "Item Code",
    "Description",
    "Quantity",
    "Estimated Rate",
    *SUPPLIER_KEYS,
)

# CSV header -> BomRow attribute for the text/numeric columns.
HEADER_FIELDS = {
    "Category": "category",
    "Sub Category 1": "sub_category_1",
    "Sub Category 2": "sub_category_2",
    "Item Code": "item_code",
    "Description": "description",
    "Quantity": "quantity",
    "Estimated Rate": "estimated_rate",
}


def empty_suppliers() -> dict[str, Optional[float]]:
    return {key: None for key in SUPPLIER_KEYS}


@dataclass
class BomRow:
    category: str = ""
    sub_category_1: str = ""
    sub_category_2: str = ""
    item_code: str = ""
    material: str = ""
    description: str = ""
    quantity: Optional[float] = None
    estimated_rate: Optional[float] = None
    suppliers: dict[str, Optional[float]] = field(default_factory=empty_suppliers)
    id: Optional[str] = None
    level: Optional[int] = None
    children: Optional[list["BomRow"]] = None

    def __post_init__(self) -> None:
        merged = empty_suppliers()
        for key, value in (self.suppliers or {}).items():
            if key in merged:
                merged[key] = value
        self.suppliers = merged

    @property
    def is_aggregate(self) -> bool:
        return self.children is not None

    def supplier_rates(self) -> list[float]:
        return [self.suppliers[key] for key in SUPPLIER_KEYS if self.suppliers[key] is not None]

    def copy(self) -> "BomRow":
        return copy.deepcopy(self)

    def to_dict(self, *, include_children: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "category": self.category,
            "sub_category_1": self.sub_category_1,
            "sub_category_2": self.sub_category_2,
            "item_code": self.item_code,
            "material": self.material,
            "description": self.description,
            "quantity": self.quantity,
            "estimated_rate": self.estimated_rate,
            "suppliers": dict(self.suppliers),
        }
        if self.level is not None:
            payload["level"] = self.level
        if include_children and self.children is not None:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload


@dataclass
class ParseResult:
    success: bool
    data: list[BomRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, *errors: str) -> "ParseResult":
        return cls(success=False, data=[], errors=list(errors))


class HeatmapColor(NamedTuple):
    background_color: str
    text_color: str
