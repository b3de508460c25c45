"""Colour, radius and label encodings for sales values."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import NamedTuple, Sequence

from pincode_map.common.deterministic import plain_number
from pincode_map.common.models import ResolvedRecord
from pincode_map.pipeline.aggregate import sales_range

DEFAULT_CURRENCY_SYMBOL = "₹"
DEGENERATE_RADIUS = 8
MIN_RADIUS = 5
RADIUS_SPAN = 20

_HEX_RE = re.compile(r"^#([0-9a-fA-F]{6})$")
_RGB_RE = re.compile(r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*[\d.]+\s*)?\)$")


def _channel(value: float) -> int:
    return max(0, min(255, int(math.floor(value))))


class Rgb(NamedTuple):
    r: int
    g: int
    b: int

    @classmethod
    def parse(cls, text: str) -> "Rgb":
        """Read ``#rrggbb`` or ``rgb(r, g, b)``."""
        cleaned = text.strip()
        hex_match = _HEX_RE.match(cleaned)
        if hex_match:
            value = hex_match.group(1)
            return cls(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))
        rgb_match = _RGB_RE.match(cleaned)
        if rgb_match:
            return cls(*(_channel(int(part)) for part in rgb_match.groups()))
        raise ValueError(f"Unsupported colour: {text!r}")

    def css(self) -> str:
        return f"rgb({self.r}, {self.g}, {self.b})"

    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def shade(self, amount: int) -> "Rgb":
        """Lighten (positive) or darken (negative) every channel, clamped."""
        return Rgb(_channel(self.r + amount), _channel(self.g + amount), _channel(self.b + amount))


NEUTRAL_COLOR = Rgb(0x33, 0x88, 0xFF)


def format_sales(sales: float, currency_symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    if sales >= 1_000_000:
        return f"{currency_symbol}{sales / 1_000_000:.2f}M"
    if sales >= 1_000:
        return f"{currency_symbol}{sales / 1_000:.1f}K"
    return f"{currency_symbol}{plain_number(sales)}"


@dataclass(frozen=True)
class VisualEncoder:
    min_sales: float
    max_sales: float
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL

    @classmethod
    def for_records(
        cls,
        display_set: Sequence[ResolvedRecord],
        currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
    ) -> "VisualEncoder":
        minimum, maximum = sales_range(display_set)
        return cls(min_sales=minimum, max_sales=maximum, currency_symbol=currency_symbol)

    @property
    def degenerate(self) -> bool:
        return self.max_sales == self.min_sales

    def ratio(self, sales: float) -> float:
        return (sales - self.min_sales) / (self.max_sales - self.min_sales)

    def color(self, sales: float) -> Rgb:
        if self.degenerate:
            return NEUTRAL_COLOR
        ratio = self.ratio(sales)
        return Rgb(
            _channel(50 + 205 * ratio),
            _channel(100 * (1 - ratio)),
            _channel(200 + 55 * (1 - ratio)),
        )

    def radius(self, sales: float) -> float:
        if self.degenerate:
            return DEGENERATE_RADIUS
        return MIN_RADIUS + RADIUS_SPAN * self.ratio(sales)

    def magnitude_label(self, sales: float) -> str:
        return format_sales(sales, self.currency_symbol)
