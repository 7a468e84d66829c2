from __future__ import annotations

from .layers import (  # noqa: F401
    DEFAULT_LINE_HEIGHT,
    ERROR_CORRECTION_LEVELS,
    FIT_MODES,
    MASK_TYPES,
    TEXT_ALIGNS,
    CropRect,
    MaskConfig,
    ModeLayers,
    PhotoLayerConfig,
    QRCodeLayerConfig,
    TextLayerConfig,
)
from .layout import MODES, CanvasConfig, TemplateLayoutConfig  # noqa: F401
