from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, NamedTuple

from ..shared.rich_text import TextSpan, plain_text_to_rich_text

TEXT_ALIGNS = ("left", "center", "right", "justify")
TEXT_DECORATIONS = ("underline", "line-through", "overline")
FONT_STYLES = ("normal", "italic", "oblique")
PHOTO_TYPES = ("photo", "logo", "signature", "decoration")
FIT_MODES = ("contain", "cover", "fill", "none")
MASK_TYPES = ("none", "circle", "ellipse", "roundedRect", "polygon")
ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")
QR_DISPLAY_TYPES = ("qr_code", "link")

DEFAULT_TEXT_Z_INDEX = 100
DEFAULT_PHOTO_Z_INDEX = 0
DEFAULT_QR_Z_INDEX = 50
DEFAULT_LINE_HEIGHT = 1.2
DEFAULT_BORDER_RADIUS = 10.0

LEFT_ALIGNED_LAYER_IDS = frozenset({"certificate_no", "issue_date"})


class CropRect(NamedTuple):
    """Source crop as fractions (0..1) of the decoded image."""

    x: float = 0.0
    y: float = 0.0
    width: float = 1.0
    height: float = 1.0


@dataclass(frozen=True)
class MaskConfig:
    type: str = "none"
    border_radius: float = DEFAULT_BORDER_RADIUS
    # Polygon vertices as fractions of the destination rect.
    points: tuple[tuple[float, float], ...] = ()


@dataclass(frozen=True)
class TextLayerConfig:
    kind: ClassVar[str] = "text"

    id: str
    x: float = 0.0
    y: float = 0.0
    x_percent: float | None = None
    y_percent: float | None = None
    font_size: float = 16.0
    color: str = "#000000"
    font_weight: str = "normal"
    font_family: str = "Arial"
    font_style: str = "normal"
    text_decoration: str | None = None
    letter_spacing: float = 0.0
    line_height: float = DEFAULT_LINE_HEIGHT
    max_width: float | None = None
    text_align: str | None = None
    default_text: str | None = None
    use_default_text: bool = False
    rich_text: tuple[TextSpan, ...] | None = None
    visible: bool = True
    z_index: int = DEFAULT_TEXT_Z_INDEX

    @property
    def effective_align(self) -> str:
        if self.text_align is None:
            return "left" if self.id in LEFT_ALIGNED_LAYER_IDS else "center"
        if self.text_align not in TEXT_ALIGNS:
            return "left"
        return self.text_align

    def base_style(self) -> dict:
        return {
            "font_weight": self.font_weight,
            "font_family": self.font_family,
            "font_size": self.font_size,
            "color": self.color,
            "font_style": self.font_style,
        }

    def default_rich_text(self) -> list[TextSpan]:
        """The layer's own content: stored rich text, else ``default_text``."""

        if self.rich_text:
            return list(self.rich_text)
        return plain_text_to_rich_text(self.default_text or "", self.base_style())


@dataclass(frozen=True)
class PhotoLayerConfig:
    kind: ClassVar[str] = "photo"

    id: str
    src: str = ""
    type: str = "photo"
    x: float = 0.0
    y: float = 0.0
    width: float | None = None
    height: float | None = None
    x_percent: float | None = None
    y_percent: float | None = None
    width_percent: float | None = None
    height_percent: float | None = None
    z_index: int = DEFAULT_PHOTO_Z_INDEX
    fit_mode: str = "contain"
    crop: CropRect | None = None
    mask: MaskConfig | None = None
    opacity: float = 1.0
    rotation: float = 0.0
    maintain_aspect_ratio: bool = False
    original_width: float | None = None
    original_height: float | None = None


@dataclass(frozen=True)
class QRCodeLayerConfig:
    kind: ClassVar[str] = "qr"

    id: str
    qr_data: str = "{{CERTIFICATE_URL}}"
    error_correction_level: str = "M"
    display_type: str = "qr_code"
    x: float = 0.0
    y: float = 0.0
    width: float | None = None
    height: float | None = None
    x_percent: float | None = None
    y_percent: float | None = None
    width_percent: float | None = None
    height_percent: float | None = None
    z_index: int = DEFAULT_QR_Z_INDEX
    foreground_color: str = "#000000"
    background_color: str = "#FFFFFF"
    opacity: float = 1.0
    rotation: float = 0.0
    maintain_aspect_ratio: bool = True
    margin: int = 0
    # Only used when ``display_type == "link"``.
    font_size: float | None = None
    font_family: str = "Arial"
    font_weight: str = "normal"
    text_align: str = "left"


@dataclass(frozen=True)
class ModeLayers:
    text_layers: tuple[TextLayerConfig, ...] = ()
    photo_layers: tuple[PhotoLayerConfig, ...] = ()
    qr_layers: tuple[QRCodeLayerConfig, ...] = ()

    def layer_ids(self) -> list[str]:
        return [
            layer.id
            for group in (self.text_layers, self.photo_layers, self.qr_layers)
            for layer in group
        ]
