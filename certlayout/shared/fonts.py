from __future__ import annotations

import os
from dataclasses import dataclass

from PIL import ImageFont

from ..logging_setup import get_logger

logger = get_logger("fonts")

# family (lower-case) -> (regular, bold, italic, bold italic) TrueType files
_TTF_FAMILIES: dict[str, tuple[str, str, str, str]] = {
    "sans": (
        "DejaVuSans.ttf",
        "DejaVuSans-Bold.ttf",
        "DejaVuSans-Oblique.ttf",
        "DejaVuSans-BoldOblique.ttf",
    ),
    "serif": (
        "DejaVuSerif.ttf",
        "DejaVuSerif-Bold.ttf",
        "DejaVuSerif-Italic.ttf",
        "DejaVuSerif-BoldItalic.ttf",
    ),
    "mono": (
        "DejaVuSansMono.ttf",
        "DejaVuSansMono-Bold.ttf",
        "DejaVuSansMono-Oblique.ttf",
        "DejaVuSansMono-BoldOblique.ttf",
    ),
}

_FAMILY_ALIASES: dict[str, str] = {
    "arial": "sans",
    "helvetica": "sans",
    "inter": "sans",
    "roboto": "sans",
    "poppins": "sans",
    "montserrat": "sans",
    "open sans": "sans",
    "sans-serif": "sans",
    "dejavu sans": "sans",
    "times": "serif",
    "times new roman": "serif",
    "georgia": "serif",
    "garamond": "serif",
    "playfair display": "serif",
    "serif": "serif",
    "dejavu serif": "serif",
    "courier": "mono",
    "courier new": "mono",
    "monospace": "mono",
    "dejavu sans mono": "mono",
}

# Base-14 PDF fonts: (regular, bold, italic, bold italic)
_PDF_FAMILIES: dict[str, tuple[str, str, str, str]] = {
    "sans": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
    "serif": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "mono": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}

SAFE_FALLBACK_FAMILY = "sans"


@dataclass(frozen=True)
class FontSpec:
    family: str = "Arial"
    size: float = 16.0
    weight: str = "normal"
    style: str = "normal"

    @property
    def is_bold(self) -> bool:
        weight = str(self.weight or "").lower()
        if weight in {"bold", "bolder"}:
            return True
        try:
            return int(weight) >= 600
        except ValueError:
            return False

    @property
    def is_italic(self) -> bool:
        return str(self.style or "").lower() in {"italic", "oblique"}

    def css(self) -> str:
        return f"{self.style} {self.weight} {self.size:g}px {self.family}"


def _variant_index(font: FontSpec) -> int:
    return (1 if font.is_bold else 0) + (2 if font.is_italic else 0)


def normalize_family(family: str | None) -> str:
    key = (family or "").split(",")[0].strip().strip("'\"").lower()
    return _FAMILY_ALIASES.get(key, key)


def pdf_font_name(font: FontSpec, warnings: list[str] | None = None) -> str:
    family = normalize_family(font.family)
    variants = _PDF_FAMILIES.get(family)
    if variants is None:
        variants = _PDF_FAMILIES[SAFE_FALLBACK_FAMILY]
        _warn(warnings, font.family, variants[0], "not available")
    return variants[_variant_index(font)]


def _warn(warnings: list[str] | None, requested: str, replacement: str, reason: str) -> None:
    logger.warning("[CERT-FONT] family=%s → %s (%s)", requested or "<default>", replacement, reason)
    if warnings is not None:
        message = (
            f"[font-fallback] {requested or '<default>'} replaced with {replacement} ({reason})."
        )
        if message not in warnings:
            warnings.append(message)


class FontRegistry:
    """Resolves :class:`FontSpec` values to Pillow fonts.

    Families map onto TrueType files found in ``font_dir`` (extra families
    can be registered explicitly). Anything unresolvable falls back to the
    default font file, then to Pillow's bundled font. Substitutions are
    appended to the caller's ``warnings`` list; the registry itself only
    caches loaded font files and can be shared between renders.
    """

    def __init__(self, font_dir: str, default_font_path: str):
        self.font_dir = font_dir
        self.default_font_path = default_font_path
        self._registered: dict[tuple[str, int], str] = {}
        self._loaded: dict[tuple[str, float], ImageFont.FreeTypeFont] = {}

    @classmethod
    def from_settings(cls, settings) -> "FontRegistry":
        return cls(settings.font_dir, settings.default_font_path)

    def register(
        self, family: str, path: str, *, weight: str = "normal", style: str = "normal"
    ) -> None:
        spec = FontSpec(family=family, weight=weight, style=style)
        self._registered[(normalize_family(family), _variant_index(spec))] = path

    def resolve_path(self, font: FontSpec) -> str | None:
        family = normalize_family(font.family)
        index = _variant_index(font)
        registered = self._registered.get((family, index)) or self._registered.get((family, 0))
        if registered and os.path.isfile(registered):
            return registered
        variants = _TTF_FAMILIES.get(family)
        if variants:
            for candidate in (variants[index], variants[0]):
                path = os.path.join(self.font_dir, candidate)
                if os.path.isfile(path):
                    return path
        return None

    def load(self, font: FontSpec, warnings: list[str] | None = None):
        size = max(float(font.size), 1.0)
        path = self.resolve_path(font)
        if path is None:
            if os.path.isfile(self.default_font_path):
                path = self.default_font_path
                _warn(warnings, font.family, os.path.basename(path), "not available")
            else:
                _warn(warnings, font.family, "Pillow default", "no font files")
                return ImageFont.load_default(size=size)
        key = (path, size)
        cached = self._loaded.get(key)
        if cached is None:
            try:
                cached = ImageFont.truetype(path, size)
            except OSError:
                _warn(warnings, font.family, "Pillow default", f"unreadable {path}")
                return ImageFont.load_default(size=size)
            self._loaded[key] = cached
        return cached
