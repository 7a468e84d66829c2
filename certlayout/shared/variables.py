"""``{variable}`` substitution for text layer content."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Iterable, Mapping

from .rich_text import RichText

VARIABLE_RE = re.compile(r"\{(\w+)\}")


def _ordered_unique(names: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def extract_variables(text: str | None) -> list[str]:
    return _ordered_unique(VARIABLE_RE.findall(text or ""))


def extract_variables_from_rich_text(rich_text: RichText | None) -> list[str]:
    return _ordered_unique(name for span in rich_text or () for name in VARIABLE_RE.findall(span.text))


def extract_variables_from_layer(layer) -> list[str]:
    return _ordered_unique(
        extract_variables(layer.default_text) + extract_variables_from_rich_text(layer.rich_text)
    )


def has_variables(text: str | None) -> bool:
    return bool(VARIABLE_RE.search(text or ""))


def is_valid_variable_name(name: str) -> bool:
    return bool(re.fullmatch(r"\w+", name or ""))


def replace_variables(text: str | None, values: Mapping[str, object]) -> str:
    """Replace ``{name}`` tokens; a token whose value is missing or blank stays as-is."""

    def _replace(match: re.Match) -> str:
        value = values.get(match.group(1))
        if value is None or str(value).strip() == "":
            return match.group(0)
        return str(value)

    return VARIABLE_RE.sub(_replace, text or "")


def replace_variables_in_rich_text(rich_text: RichText, values: Mapping[str, object]) -> RichText:
    """Substitute inside each span so the value inherits the placeholder's style."""

    return [
        replace(span, text=replace_variables(span.text, values)) if has_variables(span.text) else span
        for span in rich_text
    ]


def merge_variable_data(*sources: Mapping[str, object] | None) -> dict[str, object]:
    """Merge value maps; earlier sources win."""

    merged: dict[str, object] = {}
    for source in reversed(sources):
        if source:
            merged.update(source)
    return merged
