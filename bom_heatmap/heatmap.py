"""
heatmap.py: per-row supplier rate colouring.

Each supplier cell is ranked against the other supplier quotes in the same
row: the cheapest quote is green, the midpoint yellow and the dearest red.
The estimated rate never affects the colour; it only drives the percentage
annotation shown next to the amount.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from bom_heatmap.models import BomRow, HeatmapColor
from bom_heatmap.numbers import (
    PLACEHOLDER,
    calculate_percentage_diff,
    format_currency,
    format_percentage_diff,
)

NEUTRAL = HeatmapColor("#ffffff", "#6b7280")
NO_SPREAD = HeatmapColor("#fef3c7", "#92400e")
SCALE_TEXT_COLOR = "#000000"
SATURATION = 85
LIGHTNESS = 75

BELOW_ESTIMATE_COLOR = "#166534"
ABOVE_ESTIMATE_COLOR = "#991b1b"

NO_SUPPLIER_RATE = "No supplier rate available"
NO_ESTIMATED_RATE = "No estimated rate available"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def hsl_to_rgb(hue: float, saturation: float, lightness: float) -> str:
    """Hue in degrees, saturation and lightness in percent; returns ``rgb(r, g, b)``."""
    h = hue / 360
    s = saturation / 100
    l = lightness / 100

    if s == 0:
        r = g = b = l
    else:
        def hue_to_channel(p: float, q: float, t: float) -> float:
            if t < 0:
                t += 1
            if t > 1:
                t -= 1
            if t < 1 / 6:
                return p + (q - p) * 6 * t
            if t < 1 / 2:
                return q
            if t < 2 / 3:
                return p + (q - p) * (2 / 3 - t) * 6
            return p

        q = l * (1 + s) if l < 0.5 else l + s - l * s
        p = 2 * l - q
        r = hue_to_channel(p, q, h + 1 / 3)
        g = hue_to_channel(p, q, h)
        b = hue_to_channel(p, q, h - 1 / 3)

    return f"rgb({_round_half_up(r * 255)}, {_round_half_up(g * 255)}, {_round_half_up(b * 255)})"


def heatmap_position(value: float, rates: Sequence[float]) -> float:
    low, high = min(rates), max(rates)
    spread = high - low
    return (value - low) / spread if spread > 0 else 0.0


def position_to_hue(position: float) -> float:
    # 0 -> 120 (green), 0.5 -> 60 (yellow), 1 -> 0 (red)
    if position <= 0.5:
        return 120 - position * 120
    return 60 - (position - 0.5) * 120


def calculate_heatmap_color(value: Optional[float], row: BomRow) -> HeatmapColor:
    if value is None:
        return NEUTRAL
    rates = row.supplier_rates()
    if not rates:
        return NEUTRAL
    if min(rates) == max(rates):
        return NO_SPREAD
    hue = position_to_hue(heatmap_position(value, rates))
    return HeatmapColor(hsl_to_rgb(hue, SATURATION, LIGHTNESS), SCALE_TEXT_COLOR)


def diff_text_color(diff: Optional[float]) -> str:
    if diff is None or diff == 0:
        return SCALE_TEXT_COLOR
    return BELOW_ESTIMATE_COLOR if diff < 0 else ABOVE_ESTIMATE_COLOR


def format_supplier_rate(supplier_rate: Optional[float], estimated_rate: Optional[float]) -> str:
    if supplier_rate is None:
        return PLACEHOLDER
    diff = calculate_percentage_diff(supplier_rate, estimated_rate)
    return f"{format_currency(supplier_rate)} ({format_percentage_diff(diff)})"


def supplier_cell_tooltip(supplier_rate: Optional[float], estimated_rate: Optional[float]) -> str:
    if supplier_rate is None:
        return NO_SUPPLIER_RATE
    if estimated_rate is None:
        return NO_ESTIMATED_RATE
    diff = calculate_percentage_diff(supplier_rate, estimated_rate)
    return "\n".join(
        [
            f"Estimated: {format_currency(estimated_rate)}",
            f"Supplier: {format_currency(supplier_rate)}",
            f"Diff: {format_percentage_diff(diff)}",
        ]
    )
