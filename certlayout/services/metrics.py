from __future__ import annotations

import math
from typing import NamedTuple, Protocol

from ..shared.fonts import FontSpec
from .surfaces import TextMetrics

# Ascent/descent split used when a measurer reports unusable metrics, which
# is what happens when a font has not finished loading.
FALLBACK_ASCENT_RATIO = 0.8
FALLBACK_DESCENT_RATIO = 0.2


class TextMeasurer(Protocol):
    def set_font(self, font: FontSpec) -> None:
        ...

    def measure_text(self, text: str) -> TextMetrics:
        ...


class FontMetrics(NamedTuple):
    ascent: float
    descent: float
    fallback: bool

    @property
    def height(self) -> float:
        return self.ascent + self.descent


def _usable(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0


def safe_width(value: float) -> float:
    """Clamp a measured width to a finite, non-negative number."""

    if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        return 0.0
    return float(value)


def resolve_font_metrics(measurer: TextMeasurer, text: str, font_size: float) -> FontMetrics:
    metrics = measurer.measure_text(text)
    if _usable(metrics.ascent) and _usable(metrics.descent):
        return FontMetrics(float(metrics.ascent), float(metrics.descent), False)
    return FontMetrics(
        font_size * FALLBACK_ASCENT_RATIO,
        font_size * FALLBACK_DESCENT_RATIO,
        True,
    )


def measure_width(measurer: TextMeasurer, text: str) -> float:
    return safe_width(measurer.measure_text(text).width)


def char_widths(measurer: TextMeasurer, text: str) -> list[float]:
    return [measure_width(measurer, ch) for ch in text]


def measure_spaced_width(measurer: TextMeasurer, text: str, letter_spacing: float = 0.0) -> float:
    """Width of ``text`` as drawn, including manual letter spacing gaps."""

    if not letter_spacing:
        return measure_width(measurer, text)
    widths = char_widths(measurer, text)
    gaps = max(0, len(text) - 1)
    return sum(widths) + gaps * letter_spacing
