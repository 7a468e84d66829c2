"""Rich text spans for certificate text layers.

A rich text value is an ordered list of :class:`TextSpan`. Joining every
span's ``text`` gives back the layer's plain text; the optional fields on a
span override the layer defaults for that run of characters only.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Iterable, NamedTuple

MIXED = "mixed"

# Style fields compared when merging neighbours. ``font_style`` is included so
# an italic run is never folded into an upright one.
STYLE_KEYS: tuple[str, ...] = (
    "font_weight",
    "font_family",
    "font_size",
    "color",
    "text_align",
    "font_style",
)

_JSON_KEYS = {
    "font_weight": "fontWeight",
    "font_family": "fontFamily",
    "font_size": "fontSize",
    "color": "color",
    "text_align": "textAlign",
    "font_style": "fontStyle",
}


@dataclass(frozen=True)
class TextSpan:
    text: str
    font_weight: str | None = None
    font_family: str | None = None
    font_size: float | None = None
    color: str | None = None
    text_align: str | None = None
    font_style: str | None = None

    def style(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in STYLE_KEYS}

    def same_style(self, other: "TextSpan") -> bool:
        return all(getattr(self, key) == getattr(other, key) for key in STYLE_KEYS)

    @classmethod
    def from_dict(cls, data: dict) -> "TextSpan":
        kwargs: dict[str, Any] = {"text": str(data.get("text") or "")}
        for attr, json_key in _JSON_KEYS.items():
            value = data.get(json_key, data.get(attr))
            if value is None:
                continue
            if attr == "font_size":
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    continue
            kwargs[attr] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"text": self.text}
        for attr, json_key in _JSON_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                out[json_key] = value
        return out


RichText = list[TextSpan]

_SPAN_FIELDS = {f.name for f in fields(TextSpan)} - {"text"}


def _attr_name(key: str) -> str | None:
    if key in _SPAN_FIELDS:
        return key
    return next(
        (name for name, json_key in _JSON_KEYS.items() if json_key == key), None
    )


def _clean_style(style: dict | None) -> dict[str, Any]:
    if not style:
        return {}
    cleaned: dict[str, Any] = {}
    for key, value in style.items():
        attr = _attr_name(key)
        if attr is not None:
            cleaned[attr] = value
    return cleaned


def plain_text_to_rich_text(text: str, base_style: dict | None = None) -> RichText:
    return [TextSpan(text=text, **_clean_style(base_style))]


def rich_text_to_plain_text(rich_text: Iterable[TextSpan]) -> str:
    return "".join(span.text for span in rich_text)


def rich_text_from_json(payload: Any) -> RichText | None:
    """Build rich text from the editor's JSON list, or ``None`` if unusable."""

    if not isinstance(payload, (list, tuple)):
        return None
    spans = [TextSpan.from_dict(item) for item in payload if isinstance(item, dict)]
    return spans or None


def rich_text_to_json(rich_text: Iterable[TextSpan]) -> list[dict]:
    return [span.to_dict() for span in rich_text]


def merge_adjacent_spans(rich_text: RichText) -> RichText:
    if len(rich_text) <= 1:
        return list(rich_text)
    merged: RichText = [rich_text[0]]
    for span in rich_text[1:]:
        prev = merged[-1]
        if prev.same_style(span):
            merged[-1] = replace(prev, text=prev.text + span.text)
        else:
            merged.append(span)
    return merged


def _iter_overlaps(rich_text: RichText, start: int, end: int):
    """Yield ``(span, span_start, span_end)`` for spans intersecting ``[start, end)``."""

    offset = 0
    for span in rich_text:
        span_start = offset
        span_end = offset + len(span.text)
        offset = span_end
        if span_end <= start or span_start >= end:
            continue
        yield span, span_start, span_end


def apply_style_to_range(
    rich_text: RichText, start: int, end: int, style: dict
) -> RichText:
    """Apply ``style`` to the characters in ``[start, end)`` of the plain text.

    Spans straddling a boundary are split into before/overlap/after pieces,
    empty pieces are dropped and equal neighbours are merged afterwards.
    Reversed bounds are treated as the same range.
    """

    if start == end:
        return rich_text
    start, end = sorted((start, end))
    overrides = _clean_style(style)
    result: RichText = []
    offset = 0
    for span in rich_text:
        span_start = offset
        span_end = offset + len(span.text)
        offset = span_end
        if span_end <= start or span_start >= end:
            result.append(span)
            continue
        overlap_start = max(span_start, start)
        overlap_end = min(span_end, end)
        before = span.text[: overlap_start - span_start]
        middle = span.text[overlap_start - span_start : overlap_end - span_start]
        after = span.text[overlap_end - span_start :]
        if before:
            result.append(replace(span, text=before))
        if middle:
            result.append(replace(span, text=middle, **overrides))
        if after:
            result.append(replace(span, text=after))
    return merge_adjacent_spans(result)


def extract_spans_for_range(rich_text: RichText, start: int, end: int) -> RichText:
    """Return the pieces of ``rich_text`` covering ``[start, end)``, styles intact."""

    start, end = sorted((start, end))
    pieces: RichText = []
    for span, span_start, _ in _iter_overlaps(rich_text, start, end):
        lo = max(span_start, start) - span_start
        hi = min(span_start + len(span.text), end) - span_start
        pieces.append(replace(span, text=span.text[lo:hi]))
    return pieces


def get_common_style_value(rich_text: RichText, start: int, end: int, key: str):
    if start == end:
        return None
    start, end = sorted((start, end))
    attr = _attr_name(key) or key
    found = False
    common = None
    for span, _, _ in _iter_overlaps(rich_text, start, end):
        value = getattr(span, attr)
        if not found:
            common = value
            found = True
        elif value != common:
            return MIXED
    return common


def has_mixed_style(rich_text: RichText, key: str) -> bool:
    if len(rich_text) <= 1:
        return False
    attr = _attr_name(key) or key
    values: list[Any] = []
    for span in rich_text:
        value = getattr(span, attr)
        if value is not None and value not in values:
            values.append(value)
    return len(values) > 1


class SelectionRange(NamedTuple):
    start: int
    end: int


def get_selection_offsets(
    container_text: str,
    anchor: int | None,
    focus: int | None,
) -> SelectionRange | None:
    """Normalise an editor selection into plain-text offsets.

    ``anchor``/``focus`` are the caret positions reported by whatever UI hosts
    the editor. Returns ``None`` when nothing is selected or the selection
    falls outside ``container_text``.
    """

    if anchor is None or focus is None:
        return None
    start, end = sorted((anchor, focus))
    if start < 0 or end > len(container_text):
        return None
    return SelectionRange(start, end)
