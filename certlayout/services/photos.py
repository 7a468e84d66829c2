from __future__ import annotations

from dataclasses import replace
from typing import NamedTuple

from PIL import Image

from ..models.layers import CropRect, PhotoLayerConfig, QRCodeLayerConfig
from ..models.layout import CanvasConfig
from .surfaces import Rect, Surface


class FitResult(NamedTuple):
    width: float
    height: float
    offset_x: float
    offset_y: float


def calculate_fit_dimensions(
    source_width: float,
    source_height: float,
    target_width: float,
    target_height: float,
    fit_mode: str,
    scale: float = 1.0,
) -> FitResult:
    """Map a source size into a target box.

    ``contain`` letterboxes, ``cover`` fills and overflows (the caller clips),
    ``fill`` stretches and ``none`` keeps the native size, times ``scale``,
    at the top-left.
    Unknown modes behave like ``contain``.
    """

    if fit_mode == "fill" or source_width <= 0 or source_height <= 0:
        return FitResult(target_width, target_height, 0.0, 0.0)
    if fit_mode == "none":
        return FitResult(source_width * scale, source_height * scale, 0.0, 0.0)
    if target_width <= 0 or target_height <= 0:
        return FitResult(0.0, 0.0, 0.0, 0.0)

    source_aspect = source_width / source_height
    target_aspect = target_width / target_height
    wider = source_aspect > target_aspect
    if fit_mode == "cover":
        wider = not wider

    if wider:
        height = target_width / source_aspect
        return FitResult(target_width, height, 0.0, (target_height - height) / 2)
    width = target_height * source_aspect
    return FitResult(width, target_height, (target_width - width) / 2, 0.0)


def resolve_box(
    layer: PhotoLayerConfig | QRCodeLayerConfig,
    surface_width: float,
    surface_height: float,
    scale: float = 1.0,
    natural_size: tuple[int, int] | None = None,
) -> Rect:
    """Pixel rectangle of a boxed layer on the output surface.

    Percentages win; legacy pixel fields are in canvas units and get scaled.
    A photo without any size falls back to its image's natural size.
    """

    x = layer.x_percent * surface_width if layer.x_percent is not None else layer.x * scale
    y = layer.y_percent * surface_height if layer.y_percent is not None else layer.y * scale
    if layer.width_percent is not None:
        width = layer.width_percent * surface_width
    elif layer.width is not None:
        width = layer.width * scale
    else:
        width = natural_size[0] * scale if natural_size else 0.0
    if layer.height_percent is not None:
        height = layer.height_percent * surface_height
    elif layer.height is not None:
        height = layer.height * scale
    else:
        height = natural_size[1] * scale if natural_size else 0.0
    return Rect(x, y, width, height)


def apply_crop(image: Image.Image, crop: CropRect | None) -> Image.Image:
    if crop is None or tuple(crop) == tuple(CropRect()):
        return image
    width, height = image.size
    left = min(max(0, round(crop.x * width)), width - 1)
    top = min(max(0, round(crop.y * height)), height - 1)
    right = max(left + 1, min(width, round((crop.x + crop.width) * width)))
    bottom = max(top + 1, min(height, round((crop.y + crop.height) * height)))
    return image.crop((left, top, right, bottom))


def draw_photo_layer(
    surface: Surface, layer: PhotoLayerConfig, image: Image.Image, box: Rect, scale: float = 1.0
) -> None:
    source = apply_crop(image, layer.crop)
    fit = calculate_fit_dimensions(source.width, source.height, box.width, box.height, layer.fit_mode, scale)
    if fit.width <= 0 or fit.height <= 0:
        return
    dest = Rect(box.x + fit.offset_x, box.y + fit.offset_y, fit.width, fit.height)
    surface.draw_image(
        source,
        dest,
        frame=box,
        mask=layer.mask,
        opacity=layer.opacity,
        rotation=layer.rotation,
    )


def resize_photo_layer(
    layer: PhotoLayerConfig,
    canvas: CanvasConfig,
    width: float | None = None,
    height: float | None = None,
) -> PhotoLayerConfig:
    """Return ``layer`` resized to the edited dimension(s).

    With ``maintain_aspect_ratio`` and a known original size, editing one
    side recomputes the other from ``original_width / original_height``.
    """

    new_width = width if width is not None else layer.width
    new_height = height if height is not None else layer.height
    locked = (
        layer.maintain_aspect_ratio
        and layer.original_width
        and layer.original_height
        and (width is None) != (height is None)
    )
    if locked and width is not None:
        new_height = width * (layer.original_height / layer.original_width)
    elif locked and height is not None:
        new_width = height * (layer.original_width / layer.original_height)

    changes: dict = {"width": new_width, "height": new_height}
    if new_width is not None and canvas.width > 0:
        changes["width_percent"] = new_width / canvas.width
    if new_height is not None and canvas.height > 0:
        changes["height_percent"] = new_height / canvas.height
    return replace(layer, **changes)
