from __future__ import annotations

from PIL import Image, ImageChops, ImageColor, ImageDraw, ImageFont

from ..logging_setup import get_logger
from ..models.layers import MaskConfig
from ..shared.fonts import FontRegistry, FontSpec
from .surfaces import Rect, Surface, TextMetrics

logger = get_logger("render")

_FALLBACK_COLOR = (0, 0, 0, 255)


def parse_color(value: str | None, default: tuple[int, int, int, int] = _FALLBACK_COLOR):
    if not value:
        return default
    try:
        return ImageColor.getcolor(value, "RGBA")
    except ValueError:
        logger.warning("[render] unsupported colour %r; using %s", value, default)
        return default


def build_mask(size: tuple[int, int], mask: MaskConfig | None) -> Image.Image | None:
    """Return an ``L`` image that is 255 inside ``mask`` or ``None`` when unmasked."""

    if mask is None or mask.type == "none":
        return None
    width, height = size
    shape = Image.new("L", size, 0)
    draw = ImageDraw.Draw(shape)
    if mask.type == "circle":
        radius = min(width, height) / 2
        cx, cy = width / 2, height / 2
        draw.ellipse((cx - radius, cy - radius, cx + radius - 1, cy + radius - 1), fill=255)
    elif mask.type == "ellipse":
        draw.ellipse((0, 0, width - 1, height - 1), fill=255)
    elif mask.type == "roundedRect":
        radius = max(0.0, min(mask.border_radius, width / 2, height / 2))
        draw.rounded_rectangle((0, 0, width - 1, height - 1), radius=radius, fill=255)
    elif mask.type == "polygon":
        if len(mask.points) < 3:
            return None
        draw.polygon([(px * width, py * height) for px, py in mask.points], fill=255)
    else:
        return None
    return shape


def _composite(base: Image.Image, overlay: Image.Image, x: int, y: int) -> None:
    left, top = max(0, -x), max(0, -y)
    right = min(overlay.width, base.width - x)
    bottom = min(overlay.height, base.height - y)
    if right <= left or bottom <= top:
        return
    base.alpha_composite(overlay.crop((left, top, right, bottom)), (x + left, y + top))


class PillowSurface(Surface):
    """Raster surface drawing onto an RGBA :class:`PIL.Image.Image`."""

    def __init__(self, image: Image.Image, fonts: FontRegistry):
        self.image = image if image.mode == "RGBA" else image.convert("RGBA")
        self.width, self.height = self.image.size
        self.fonts = fonts
        self.warnings: list[str] = []
        self._draw = ImageDraw.Draw(self.image)
        self._font_spec = FontSpec()
        self._font = None

    @classmethod
    def blank(
        cls, width: int, height: int, fonts: FontRegistry, background: str = "#FFFFFF"
    ) -> "PillowSurface":
        image = Image.new("RGBA", (max(1, int(width)), max(1, int(height))), parse_color(background))
        return cls(image, fonts)

    def _current_font(self):
        if self._font is None:
            self._font = self.fonts.load(self._font_spec, self.warnings)
        return self._font

    def set_font(self, font: FontSpec) -> None:
        if font != self._font_spec or self._font is None:
            self._font_spec = font
            self._font = self.fonts.load(font, self.warnings)

    def measure_text(self, text: str) -> TextMetrics:
        font = self._current_font()
        width = font.getlength(text) if text else 0.0
        getmetrics = getattr(font, "getmetrics", None)
        ascent, descent = getmetrics() if getmetrics else (0, 0)
        return TextMetrics(float(width), float(ascent), float(descent))

    def draw_text(self, text: str, x: float, y: float, fill: str, align: str = "left") -> None:
        if not text:
            return
        font = self._current_font()
        if align in ("center", "right"):
            width = font.getlength(text)
            x -= width / 2 if align == "center" else width
        anchor = "la" if isinstance(font, ImageFont.FreeTypeFont) else None
        self._draw.text((x, y), text, font=font, fill=parse_color(fill), anchor=anchor)

    def fill_rect(self, x: float, y: float, width: float, height: float, fill: str) -> None:
        if width <= 0 or height <= 0:
            return
        self._draw.rectangle(
            (x, y, max(x, x + width - 1), max(y, y + height - 1)), fill=parse_color(fill)
        )

    def draw_image(
        self,
        image: Image.Image,
        dest: Rect,
        *,
        frame: Rect | None = None,
        mask: MaskConfig | None = None,
        opacity: float = 1.0,
        rotation: float = 0.0,
    ) -> None:
        frame = frame or dest
        frame_size = (max(1, round(frame.width)), max(1, round(frame.height)))
        dest_size = (max(1, round(dest.width)), max(1, round(dest.height)))

        layer = Image.new("RGBA", frame_size, (0, 0, 0, 0))
        scaled = image.convert("RGBA").resize(dest_size, Image.Resampling.LANCZOS)
        layer.paste(scaled, (round(dest.x - frame.x), round(dest.y - frame.y)))

        alpha = layer.getchannel("A")
        shape = build_mask(frame_size, mask)
        if shape is not None:
            alpha = ImageChops.multiply(alpha, shape)
        if opacity < 1.0:
            factor = max(0.0, opacity)
            alpha = alpha.point(lambda value: round(value * factor))
        layer.putalpha(alpha)

        if rotation:
            # CSS rotates clockwise; PIL rotates counter-clockwise.
            layer = layer.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=True)
        cx, cy = frame.center
        _composite(self.image, layer, round(cx - layer.width / 2), round(cy - layer.height / 2))

    def to_image(self, mode: str = "RGBA") -> Image.Image:
        return self.image if mode == "RGBA" else self.image.convert(mode)

    def font_warnings(self) -> list[str]:
        return list(self.warnings)
