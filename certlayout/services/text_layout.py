"""Wrapping, vertical centring and drawing of text layers.

A text layer is anchored at ``(x, y)``: ``x`` is interpreted through the
layer's alignment and ``y`` is the vertical centre of the whole block.
Lines are drawn from the top of their line box, nudged down by a small
font-size dependent offset so the output lines up with the editor preview.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from ..logging_setup import get_logger
from ..shared.fonts import FontSpec
from ..shared.rich_text import RichText, TextSpan, extract_spans_for_range, rich_text_to_plain_text
from .metrics import FontMetrics, TextMeasurer, char_widths, measure_width, resolve_font_metrics
from .surfaces import Surface

logger = get_logger("render")

NAME_LAYER_ID = "name"
META_LAYER_IDS = frozenset({"certificate_no", "issue_date"})
SCORE_LAYER_MARKERS = ("nilai", "prestasi")

SMALL_FONT_MIN = 16
SMALL_FONT_MAX = 20
SCORE_MICRO_Y = 0.087
COMPACT_MICRO_Y = 0.10
META_MICRO_Y = 0.10
SMALL_FONT_MICRO_Y = 0.40


class WrappedLine(NamedTuple):
    text: str
    # offset of the first character in the unwrapped source text
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)


class TextRun(NamedTuple):
    text: str
    font: FontSpec
    color: str
    width: float
    advances: tuple[float, ...] | None = None


def is_score_layer(layer_id: str | None) -> bool:
    lowered = (layer_id or "").lower()
    return any(marker in lowered for marker in SCORE_LAYER_MARKERS)


def _in_small_band(font_size: float) -> bool:
    return SMALL_FONT_MIN <= font_size <= SMALL_FONT_MAX


def micro_y_adjustment(layer_id: str | None, font_size: float, compact: bool = False) -> float:
    """Extra downward offset in pixels applied to every line of a layer.

    Rules are checked in order and the first match wins: score layers,
    compact templates in the small-font band, certificate number and issue
    date, then any other small-font layer.
    """

    if is_score_layer(layer_id):
        return font_size * SCORE_MICRO_Y
    if compact:
        return font_size * COMPACT_MICRO_Y if _in_small_band(font_size) else 0.0
    if layer_id in META_LAYER_IDS:
        return font_size * META_MICRO_Y
    if _in_small_band(font_size):
        return font_size * SMALL_FONT_MICRO_Y
    return 0.0


def wrap_text(
    measurer: TextMeasurer,
    text: str,
    max_width: float | None,
    layer_id: str | None = None,
) -> list[WrappedLine]:
    """Greedy word wrap on single spaces using the measurer's current font.

    Without a positive ``max_width`` the text stays on one line. The ``name``
    layer never wraps: if it does not fit it is kept whole and shifted later.
    """

    if not text:
        return []
    if not max_width or max_width <= 0:
        return [WrappedLine(text, 0)]
    if layer_id == NAME_LAYER_ID and measure_width(measurer, text) > max_width:
        return [WrappedLine(text, 0)]

    lines: list[WrappedLine] = []
    current = ""
    current_start = 0
    offset = 0
    for word in text.split(" "):
        if not current:
            current, current_start = word, offset
        else:
            candidate = f"{current} {word}"
            if measure_width(measurer, candidate) > max_width:
                lines.append(WrappedLine(current, current_start))
                current, current_start = word, offset
            else:
                current = candidate
        offset += len(word) + 1
    if current:
        lines.append(WrappedLine(current, current_start))
    return lines


def _align(value: str | None) -> str:
    return value if value in ("center", "right") else "left"


@dataclass
class TextBlock:
    """Resolved geometry of a wrapped text block."""

    lines: list[WrappedLine]
    widths: list[float]
    x: float
    start_y: float
    line_height: float
    micro_y: float
    metrics: FontMetrics
    align: str = "left"
    runs: list[list[TextRun]] = field(default_factory=list)

    @property
    def total_height(self) -> float:
        return len(self.lines) * self.line_height

    def line_top(self, index: int) -> float:
        return self.start_y + index * self.line_height + self.micro_y

    def line_left(self, index: int) -> float:
        width = self.widths[index]
        if self.align == "center":
            return self.x - width / 2
        if self.align == "right":
            return self.x - width
        return self.x


def _overflow_shift(
    layer_id: str | None, lines: list[WrappedLine], widths: list[float], max_width: float | None, align: str
) -> float:
    if layer_id != NAME_LAYER_ID or len(lines) != 1 or not max_width or max_width <= 0:
        return 0.0
    overflow = widths[0] - max_width
    if overflow <= 0:
        return 0.0
    return -overflow / 2 if align == "center" else -overflow


def _build_block(
    lines: list[WrappedLine],
    widths: list[float],
    metrics: FontMetrics,
    *,
    x: float,
    y: float,
    font_size: float,
    line_height: float,
    max_width: float | None,
    align: str | None,
    layer_id: str | None,
    compact: bool,
    runs: list[list[TextRun]] | None = None,
) -> TextBlock:
    align = _align(align)
    line_height_px = font_size * line_height
    return TextBlock(
        lines=lines,
        widths=widths,
        x=x + _overflow_shift(layer_id, lines, widths, max_width, align),
        start_y=y - len(lines) * line_height_px / 2,
        line_height=line_height_px,
        micro_y=micro_y_adjustment(layer_id, font_size, compact),
        metrics=metrics,
        align=align,
        runs=runs or [],
    )


def _first_line_metrics(
    measurer: TextMeasurer, lines: list[WrappedLine], font_size: float, layer_id: str | None
) -> FontMetrics:
    metrics = resolve_font_metrics(measurer, lines[0].text if lines else "", font_size)
    if metrics.fallback:
        logger.debug(
            "[metrics-fallback] layer=%s size=%s ascent=%.2f descent=%.2f",
            layer_id,
            font_size,
            metrics.ascent,
            metrics.descent,
        )
    return metrics


def _span_font(span: TextSpan, base: FontSpec, scale: float, inherit_style: bool) -> FontSpec:
    size = round(span.font_size * scale) if span.font_size else base.size
    style = span.font_style or (base.style if inherit_style else "normal")
    return FontSpec(
        family=span.font_family or base.family,
        size=size,
        weight=span.font_weight or base.weight,
        style=style,
    )


def _measure_run(
    measurer: TextMeasurer, text: str, font: FontSpec, color: str, letter_spacing: float
) -> TextRun:
    measurer.set_font(font)
    if letter_spacing:
        advances = tuple(char_widths(measurer, text))
        return TextRun(text, font, color, sum(advances), advances)
    return TextRun(text, font, color, measure_width(measurer, text))


def _line_width(runs: list[TextRun], letter_spacing: float) -> float:
    width = sum(run.width for run in runs)
    if letter_spacing:
        chars = sum(len(run.text) for run in runs)
        width += max(0, chars - 1) * letter_spacing
    return width


def layout_rich_text(
    measurer: TextMeasurer,
    spans: RichText,
    base_font: FontSpec,
    *,
    x: float,
    y: float,
    fill: str = "#000000",
    max_width: float | None = None,
    line_height: float = 1.2,
    align: str | None = "left",
    layer_id: str | None = None,
    letter_spacing: float = 0.0,
    compact: bool = False,
    scale: float = 1.0,
    inherit_style: bool = False,
) -> TextBlock:
    """Wrap ``spans`` on their plain text and measure each line's styled runs.

    Wrapping uses the layer's base font. Each line is then split back into
    the spans it covers; a span's own size is scaled to the output, and
    ``font_style`` only comes from the span unless ``inherit_style`` is set.
    """

    measurer.set_font(base_font)
    plain = rich_text_to_plain_text(spans)
    lines = wrap_text(measurer, plain, max_width, layer_id)
    metrics = _first_line_metrics(measurer, lines, base_font.size, layer_id)

    runs: list[list[TextRun]] = []
    widths: list[float] = []
    for line in lines:
        line_runs = [
            _measure_run(
                measurer,
                piece.text,
                _span_font(piece, base_font, scale, inherit_style),
                piece.color or fill,
                letter_spacing,
            )
            for piece in extract_spans_for_range(spans, line.start, line.end)
            if piece.text
        ]
        runs.append(line_runs)
        widths.append(_line_width(line_runs, letter_spacing))

    return _build_block(
        lines,
        widths,
        metrics,
        x=x,
        y=y,
        font_size=base_font.size,
        line_height=line_height,
        max_width=max_width,
        align=align,
        layer_id=layer_id,
        compact=compact,
        runs=runs,
    )


def layout_text(
    measurer: TextMeasurer,
    text: str,
    font: FontSpec,
    **kwargs,
) -> TextBlock:
    """Plain-text variant of :func:`layout_rich_text` using ``font`` throughout."""

    kwargs.setdefault("inherit_style", True)
    return layout_rich_text(measurer, [TextSpan(text)], font, **kwargs)


def _decorations(value: str | None) -> set[str]:
    return set((value or "").replace(",", " ").split())


def draw_block(
    surface: Surface,
    block: TextBlock,
    *,
    fill: str = "#000000",
    letter_spacing: float = 0.0,
    decoration: str | None = None,
    font_size: float | None = None,
) -> None:
    """Draw a laid-out block run by run, then any line decorations."""

    for index, line_runs in enumerate(block.runs):
        top = block.line_top(index)
        cursor = block.line_left(index)
        for run in line_runs:
            surface.set_font(run.font)
            if run.advances is None:
                surface.draw_text(run.text, cursor, top, run.color)
                cursor += run.width
                continue
            for char, advance in zip(run.text, run.advances):
                surface.draw_text(char, cursor, top, run.color)
                cursor += advance + letter_spacing

    decorations = _decorations(decoration)
    if not decorations or not block.lines:
        return
    size = font_size if font_size is not None else block.metrics.height
    thickness = max(1.0, size / 16)
    for index, width in enumerate(block.widths):
        top = block.line_top(index)
        left = block.line_left(index)
        if "underline" in decorations:
            surface.fill_rect(left, top + size, width, thickness, fill)
        if "line-through" in decorations:
            surface.fill_rect(left, top + size / 2, width, thickness, fill)
        if "overline" in decorations:
            surface.fill_rect(left, top - thickness, width, thickness, fill)


def draw_wrapped_text(
    surface: Surface,
    text: str,
    font: FontSpec,
    *,
    x: float,
    y: float,
    fill: str = "#000000",
    max_width: float | None = None,
    line_height: float = 1.2,
    align: str | None = "left",
    layer_id: str | None = None,
    letter_spacing: float = 0.0,
    decoration: str | None = None,
    compact: bool = False,
) -> TextBlock:
    block = layout_text(
        surface,
        text,
        font,
        x=x,
        y=y,
        fill=fill,
        max_width=max_width,
        line_height=line_height,
        align=align,
        layer_id=layer_id,
        letter_spacing=letter_spacing,
        compact=compact,
    )
    draw_block(
        surface,
        block,
        fill=fill,
        letter_spacing=letter_spacing,
        decoration=decoration,
        font_size=font.size,
    )
    return block


def draw_rich_text(
    surface: Surface,
    spans: RichText,
    base_font: FontSpec,
    *,
    x: float,
    y: float,
    fill: str = "#000000",
    max_width: float | None = None,
    line_height: float = 1.2,
    align: str | None = "left",
    layer_id: str | None = None,
    letter_spacing: float = 0.0,
    decoration: str | None = None,
    compact: bool = False,
    scale: float = 1.0,
) -> TextBlock:
    block = layout_rich_text(
        surface,
        spans,
        base_font,
        x=x,
        y=y,
        fill=fill,
        max_width=max_width,
        line_height=line_height,
        align=align,
        layer_id=layer_id,
        letter_spacing=letter_spacing,
        compact=compact,
        scale=scale,
    )
    draw_block(
        surface,
        block,
        fill=fill,
        letter_spacing=letter_spacing,
        decoration=decoration,
        font_size=base_font.size,
    )
    return block
