"""Drawing-surface abstraction used by the layout engine.

The engine only ever talks to a :class:`Surface`; the Pillow and reportlab
implementations live in ``pillow_surface`` and ``pdf_surface``. Coordinates
are canvas pixels with the origin at the top-left, and text is positioned by
the top of its line box (the engine's "top" baseline).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import NamedTuple

from PIL import Image

from ..models.layers import MaskConfig
from ..shared.fonts import FontSpec

ALIGNMENTS = ("left", "center", "right")


class TextMetrics(NamedTuple):
    width: float
    ascent: float
    descent: float


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


class Surface(ABC):
    """Minimal operation set the renderer needs from a 2D backend."""

    width: int
    height: int

    @abstractmethod
    def set_font(self, font: FontSpec) -> None:
        ...

    @abstractmethod
    def measure_text(self, text: str) -> TextMetrics:
        ...

    @abstractmethod
    def draw_text(self, text: str, x: float, y: float, fill: str, align: str = "left") -> None:
        ...

    @abstractmethod
    def fill_rect(self, x: float, y: float, width: float, height: float, fill: str) -> None:
        ...

    @abstractmethod
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
        """Draw ``image`` scaled into ``dest``.

        ``frame`` is the layer rectangle: drawing is clipped to it (and to
        ``mask`` inside it) and rotation happens around its centre. When
        omitted, ``dest`` doubles as the frame.
        """

    def font_warnings(self) -> list[str]:
        """Font substitutions made while drawing, for callers to surface."""

        return []
