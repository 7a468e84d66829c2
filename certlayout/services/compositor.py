"""Walks a template's layers in z-order and draws them onto a surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from PIL import Image

from ..errors import CertLayoutError, LayerRenderError
from ..logging_setup import get_logger
from ..models.layers import PhotoLayerConfig, QRCodeLayerConfig, TextLayerConfig
from ..models.layout import TemplateLayoutConfig
from ..shared.fonts import FontSpec
from ..shared.rich_text import RichText, plain_text_to_rich_text, rich_text_to_plain_text
from ..shared.scores import auto_populate_prestasi
from ..shared.variables import replace_variables_in_rich_text
from .image_store import ImageStore, load_image
from .photos import draw_photo_layer, resolve_box
from .qr import draw_qr_layer, process_qr_placeholders
from .surfaces import Surface
from .text_layout import TextBlock, draw_rich_text

logger = get_logger("render")

Layer = TextLayerConfig | PhotoLayerConfig | QRCodeLayerConfig


@dataclass(frozen=True)
class RenderOptions:
    # None: derived from the surface width against the reference canvas.
    scale: float | None = None
    compact: bool = False
    # Restricts drawing to these ids when set.
    layer_ids: frozenset[str] | None = None
    qr_values: Mapping[str, str] = field(default_factory=dict)


@dataclass
class RenderReport:
    mode: str
    scale: float
    drawn: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def resolve_scale(config: TemplateLayoutConfig, surface: Surface, options: RenderOptions) -> float:
    if options.scale and options.scale > 0:
        return options.scale
    if config.canvas.width > 0:
        return surface.width / config.canvas.width
    return 1.0


def ordered_layers(config: TemplateLayoutConfig, mode: str) -> list[Layer]:
    """Layers of ``mode`` sorted by ``z_index``; ties keep text, photo, QR order."""

    layers = config.layers_for(mode)
    combined: list[Layer] = [*layers.text_layers, *layers.photo_layers, *layers.qr_layers]
    return sorted(combined, key=lambda layer: layer.z_index)


def _has_value(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def resolve_text_content(layer: TextLayerConfig, values: Mapping[str, Any]) -> RichText:
    """Rich text to draw for ``layer``.

    The layer's own content (rich text, else ``default_text``) is used when
    ``use_default_text`` is set or no value was supplied, with ``{variable}``
    tokens filled from ``values``. Otherwise the supplied value is drawn in
    the layer's base style.
    """

    value = values.get(layer.id)
    if layer.use_default_text or not _has_value(value):
        return replace_variables_in_rich_text(layer.default_rich_text(), values)
    return plain_text_to_rich_text(str(value), layer.base_style())


def _text_anchor(layer: TextLayerConfig, surface: Surface, scale: float) -> tuple[float, float]:
    x = layer.x_percent * surface.width if layer.x_percent is not None else layer.x * scale
    y = layer.y_percent * surface.height if layer.y_percent is not None else layer.y * scale
    return x, y


def render_text_layer(
    surface: Surface,
    layer: TextLayerConfig,
    values: Mapping[str, Any],
    *,
    scale: float = 1.0,
    compact: bool = False,
) -> TextBlock | None:
    spans = resolve_text_content(layer, values)
    if not rich_text_to_plain_text(spans).strip():
        return None
    x, y = _text_anchor(layer, surface, scale)
    base_font = FontSpec(
        family=layer.font_family,
        size=max(1, round(layer.font_size * scale)),
        weight=layer.font_weight,
        style=layer.font_style,
    )
    return draw_rich_text(
        surface,
        spans,
        base_font,
        x=x,
        y=y,
        fill=layer.color,
        max_width=layer.max_width * scale if layer.max_width else None,
        line_height=layer.line_height,
        align=layer.effective_align,
        layer_id=layer.id,
        letter_spacing=layer.letter_spacing * scale,
        decoration=layer.text_decoration,
        compact=compact,
        scale=scale,
    )


def _photo_image(
    layer: PhotoLayerConfig,
    values: Mapping[str, Any],
    images: ImageStore | Mapping[str, Image.Image] | None,
) -> Image.Image | None:
    source = values.get(layer.id) or layer.src
    if isinstance(source, Image.Image):
        return source
    if isinstance(images, Mapping) and layer.id in images:
        return images[layer.id]
    if not source:
        return None
    try:
        if isinstance(images, ImageStore):
            return images.get(source)
        return load_image(source)
    except (OSError, ValueError) as exc:
        raise LayerRenderError(layer.id, f"cannot load image: {exc}", cause=exc) from exc


def render_photo_layer(
    surface: Surface,
    layer: PhotoLayerConfig,
    values: Mapping[str, Any],
    *,
    images: ImageStore | Mapping[str, Image.Image] | None = None,
    scale: float = 1.0,
) -> bool:
    image = _photo_image(layer, values, images)
    if image is None:
        return False
    box = resolve_box(layer, surface.width, surface.height, scale, natural_size=image.size)
    if box.width <= 0 or box.height <= 0:
        return False
    draw_photo_layer(surface, layer, image, box, scale)
    return True


def render_qr_layer(
    surface: Surface,
    layer: QRCodeLayerConfig,
    qr_values: Mapping[str, str],
    *,
    scale: float = 1.0,
) -> bool:
    data = process_qr_placeholders(layer.qr_data, qr_values)
    if not data.strip():
        return False
    box = resolve_box(layer, surface.width, surface.height, scale)
    draw_qr_layer(surface, layer, data, box, scale)
    return True


def _draw_layer(
    surface: Surface,
    layer: Layer,
    values: Mapping[str, Any],
    images,
    options: RenderOptions,
    scale: float,
) -> bool:
    if isinstance(layer, TextLayerConfig):
        if not layer.visible:
            return False
        block = render_text_layer(surface, layer, values, scale=scale, compact=options.compact)
        return block is not None
    if isinstance(layer, PhotoLayerConfig):
        return render_photo_layer(surface, layer, values, images=images, scale=scale)
    return render_qr_layer(surface, layer, options.qr_values, scale=scale)


def render(
    config: TemplateLayoutConfig,
    mode: str,
    field_values: Mapping[str, Any] | None,
    surface: Surface,
    *,
    images: ImageStore | Mapping[str, Image.Image] | None = None,
    options: RenderOptions | None = None,
) -> RenderReport:
    """Draw every layer of ``mode`` onto ``surface``.

    Percentages resolve against the surface size, so the same config renders
    correctly at any output resolution. Invisible or empty layers are
    skipped; an unreadable image or a surface failure raises
    :class:`LayerRenderError` naming the layer.
    """

    options = options or RenderOptions()
    scale = resolve_scale(config, surface, options)
    values: dict[str, Any] = dict(field_values or {})
    if mode == "score":
        values = auto_populate_prestasi(values)

    layers = ordered_layers(config, mode)
    report = RenderReport(mode=mode, scale=scale)
    logger.info(
        "[render] mode=%s layers=%d size=%dx%d scale=%.3f",
        mode,
        len(layers),
        surface.width,
        surface.height,
        scale,
    )
    for layer in layers:
        if options.layer_ids is not None and layer.id not in options.layer_ids:
            report.skipped.append(layer.id)
            continue
        try:
            drawn = _draw_layer(surface, layer, values, images, options, scale)
        except CertLayoutError:
            raise
        except Exception as exc:
            raise LayerRenderError(layer.id, f"drawing failed: {exc}", cause=exc) from exc
        (report.drawn if drawn else report.skipped).append(layer.id)

    report.warnings = surface.font_warnings()
    if report.warnings:
        logger.warning("[render] mode=%s font fallbacks=%d", mode, len(report.warnings))
    return report
