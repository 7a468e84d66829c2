from __future__ import annotations

from PIL import Image
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from ..logging_setup import get_logger
from ..models.layers import MaskConfig
from ..shared.fonts import FontSpec, pdf_font_name
from .surfaces import Rect, Surface, TextMetrics

logger = get_logger("render")


def _to_color(value: str | None):
    if not value:
        return colors.black
    try:
        return colors.toColor(value)
    except ValueError:
        logger.warning("[render] unsupported colour %r; using black", value)
        return colors.black


class ReportLabSurface(Surface):
    """Vector surface on a reportlab canvas.

    The canvas page is ``width`` x ``height`` points and one canvas pixel maps
    to one point. Callers pass top-left coordinates; the y flip to PDF space
    happens here.
    """

    def __init__(self, pdf_canvas: canvas.Canvas, width: float, height: float, warnings: list[str] | None = None):
        self.canvas = pdf_canvas
        self.width = width
        self.height = height
        self.warnings = warnings if warnings is not None else []
        self._font_name = "Helvetica"
        self._font_size = 16.0

    def set_font(self, font: FontSpec) -> None:
        self._font_name = pdf_font_name(font, self.warnings)
        self._font_size = max(float(font.size), 1.0)
        self.canvas.setFont(self._font_name, self._font_size)

    def measure_text(self, text: str) -> TextMetrics:
        width = stringWidth(text, self._font_name, self._font_size) if text else 0.0
        ascent, descent = pdfmetrics.getAscentDescent(self._font_name, self._font_size)
        return TextMetrics(float(width), float(ascent), float(-descent))

    def draw_text(self, text: str, x: float, y: float, fill: str, align: str = "left") -> None:
        if not text:
            return
        ascent, _ = pdfmetrics.getAscentDescent(self._font_name, self._font_size)
        baseline = self.height - (y + ascent)
        self.canvas.setFont(self._font_name, self._font_size)
        self.canvas.setFillColor(_to_color(fill))
        if align == "center":
            self.canvas.drawCentredString(x, baseline, text)
        elif align == "right":
            self.canvas.drawRightString(x, baseline, text)
        else:
            self.canvas.drawString(x, baseline, text)

    def fill_rect(self, x: float, y: float, width: float, height: float, fill: str) -> None:
        if width <= 0 or height <= 0:
            return
        self.canvas.setFillColor(_to_color(fill))
        self.canvas.rect(x, self.height - y - height, width, height, stroke=0, fill=1)

    def _clip(self, frame: Rect, mask: MaskConfig | None) -> None:
        # Origin is the frame centre, y pointing up.
        half_w, half_h = frame.width / 2, frame.height / 2
        path = self.canvas.beginPath()
        kind = mask.type if mask else "none"
        if kind == "circle":
            path.circle(0, 0, min(half_w, half_h))
        elif kind == "ellipse":
            path.ellipse(-half_w, -half_h, frame.width, frame.height)
        elif kind == "roundedRect":
            radius = max(0.0, min(mask.border_radius, half_w, half_h))
            path.roundRect(-half_w, -half_h, frame.width, frame.height, radius)
        elif kind == "polygon" and len(mask.points) >= 3:
            first, *rest = mask.points
            path.moveTo(-half_w + first[0] * frame.width, half_h - first[1] * frame.height)
            for px, py in rest:
                path.lineTo(-half_w + px * frame.width, half_h - py * frame.height)
            path.close()
        else:
            path.rect(-half_w, -half_h, frame.width, frame.height)
        self.canvas.clipPath(path, stroke=0, fill=0)

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
        cx, cy = frame.center
        c = self.canvas
        c.saveState()
        try:
            c.translate(cx, self.height - cy)
            if rotation:
                c.rotate(-rotation)
            if opacity < 1.0:
                c.setFillAlpha(max(0.0, opacity))
            self._clip(frame, mask)
            c.drawImage(
                ImageReader(image.convert("RGBA")),
                dest.x - cx,
                cy - dest.y - dest.height,
                width=dest.width,
                height=dest.height,
                mask="auto",
            )
        finally:
            c.restoreState()

    def font_warnings(self) -> list[str]:
        return list(self.warnings)
