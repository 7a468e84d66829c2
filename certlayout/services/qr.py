from __future__ import annotations

import re
from typing import Mapping

import qrcode
from PIL import Image
from qrcode.exceptions import DataOverflowError

from ..errors import LayerRenderError
from ..logging_setup import get_logger
from ..models.layers import QRCodeLayerConfig
from ..shared.fonts import FontSpec
from .metrics import measure_width
from .pillow_surface import parse_color
from .surfaces import Rect, Surface

logger = get_logger("render")

CERTIFICATE_URL_TOKEN = "{{CERTIFICATE_URL}}"
SUPPORTED_QR_TOKENS = ("CERTIFICATE_URL", "CERTIFICATE_NO", "NAME", "PUBLIC_ID")
_TOKEN_RE = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
_LINK_SPLIT_RE = re.compile(r"[\s/]")

MIN_QR_SIZE = 14
LINK_FONT_RATIO = 0.1
LINK_LINE_HEIGHT = 1.2

_ERROR_CORRECTION = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


def build_certificate_url(base_url: str, public_id: str) -> str:
    return f"{(base_url or '').rstrip('/')}/certificate/{public_id}"


def build_qr_values(
    base_url: str,
    public_id: str | None,
    *,
    certificate_no: str | None = None,
    name: str | None = None,
) -> dict[str, str]:
    values: dict[str, str] = {}
    if public_id:
        values["PUBLIC_ID"] = public_id
        values["CERTIFICATE_URL"] = build_certificate_url(base_url, public_id)
    if certificate_no:
        values["CERTIFICATE_NO"] = certificate_no
    if name:
        values["NAME"] = name
    return values


def process_qr_placeholders(qr_data: str | None, values: Mapping[str, str]) -> str:
    """Substitute ``{{TOKEN}}`` placeholders; anything left unresolved is dropped."""

    def _replace(match: re.Match) -> str:
        token = match.group(1).upper()
        value = values.get(token) if token in SUPPORTED_QR_TOKENS else None
        if value:
            return str(value)
        logger.warning("[render] qr placeholder %s has no value; removed", match.group(0))
        return ""

    return _TOKEN_RE.sub(_replace, qr_data or "")


def qr_matrix(data: str, error_correction_level: str = "M", margin: int = 0) -> list[list[bool]]:
    qr = qrcode.QRCode(
        error_correction=_ERROR_CORRECTION.get(error_correction_level, qrcode.constants.ERROR_CORRECT_M),
        box_size=1,
        border=max(0, int(margin)),
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr.get_matrix()


def qr_image(
    matrix: list[list[bool]], side: int, foreground: str = "#000000", background: str = "#FFFFFF"
) -> Image.Image:
    modules = len(matrix)
    dark = parse_color(foreground)
    light = parse_color(background, (255, 255, 255, 255))
    image = Image.new("RGBA", (modules, modules))
    image.putdata([dark if cell else light for row in matrix for cell in row])
    return image.resize((side, side), Image.Resampling.NEAREST)


def qr_side(box: Rect) -> int:
    return max(MIN_QR_SIZE, round(min(box.width, box.height)))


def wrap_link_text(surface: Surface, text: str, max_width: float) -> list[str]:
    """Break a URL on slashes and whitespace, rejoining pieces with ``/``."""

    lines: list[str] = []
    current = ""
    for word in _LINK_SPLIT_RE.split(text):
        candidate = f"{current}/{word}" if current else word
        if current and measure_width(surface, candidate) <= max_width:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def draw_qr_link(surface: Surface, layer: QRCodeLayerConfig, text: str, box: Rect, scale: float = 1.0) -> None:
    if layer.font_size:
        font_size = round(layer.font_size * scale)
    else:
        font_size = round(min(box.width, box.height) * LINK_FONT_RATIO)
    surface.set_font(FontSpec(family=layer.font_family, size=max(1, font_size), weight=layer.font_weight))
    lines = wrap_link_text(surface, text, box.width)
    line_height = font_size * LINK_LINE_HEIGHT
    top = box.y
    if len(lines) > 1:
        top = box.y + (box.height - len(lines) * line_height) / 2
    align = layer.text_align if layer.text_align in ("center", "right") else "left"
    x = {"left": box.x, "center": box.x + box.width / 2, "right": box.x + box.width}[align]
    for index, line in enumerate(lines):
        surface.draw_text(line, x, top + index * line_height, layer.foreground_color, align)


def draw_qr_layer(
    surface: Surface, layer: QRCodeLayerConfig, data: str, box: Rect, scale: float = 1.0
) -> None:
    if layer.display_type == "link":
        draw_qr_link(surface, layer, data, box, scale)
        return
    try:
        matrix = qr_matrix(data, layer.error_correction_level, layer.margin)
    except (DataOverflowError, ValueError) as exc:
        raise LayerRenderError(layer.id, f"qr data does not fit ({len(data)} chars)", cause=exc) from exc
    if layer.maintain_aspect_ratio:
        side = qr_side(box)
        dest = Rect(box.x, box.y, side, side)
    else:
        dest = Rect(box.x, box.y, max(MIN_QR_SIZE, box.width), max(MIN_QR_SIZE, box.height))
    image = qr_image(matrix, max(round(dest.width), round(dest.height)), layer.foreground_color, layer.background_color)
    surface.draw_image(image, dest, opacity=layer.opacity, rotation=layer.rotation)
