from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from ..errors import LayoutConfigError
from ..models.layers import (
    DEFAULT_BORDER_RADIUS,
    DEFAULT_LINE_HEIGHT,
    DEFAULT_PHOTO_Z_INDEX,
    DEFAULT_QR_Z_INDEX,
    DEFAULT_TEXT_Z_INDEX,
    ERROR_CORRECTION_LEVELS,
    FIT_MODES,
    FONT_STYLES,
    MASK_TYPES,
    PHOTO_TYPES,
    QR_DISPLAY_TYPES,
    TEXT_ALIGNS,
    TEXT_DECORATIONS,
    CropRect,
    MaskConfig,
    ModeLayers,
    PhotoLayerConfig,
    QRCodeLayerConfig,
    TextLayerConfig,
)
from ..models.layout import CanvasConfig, TemplateLayoutConfig
from .rich_text import rich_text_from_json, rich_text_to_json

REQUIRED_CERTIFICATE_FIELDS: tuple[str, ...] = ("name", "certificate_no", "issue_date")
OPTIONAL_CERTIFICATE_FIELDS: tuple[str, ...] = ("description", "expired_date", "category")

DEFAULT_CANVAS_WIDTH = 1500
DEFAULT_CANVAS_HEIGHT = 2121
LAYOUT_VERSION = "1.0"


def _float(value: Any, default: float | None) -> float | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return number


def _int(value: Any, default: int) -> int:
    number = _float(value, None)
    if number is None:
        return default
    return int(number)


def _choice(value: Any, choices: Iterable[str], default: str) -> str:
    if isinstance(value, str) and value in choices:
        return value
    return default


def _str(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def _bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    return bool(value)


def _parse_text_layer(raw: dict) -> TextLayerConfig:
    style = raw.get("fontStyle")
    decoration = raw.get("textDecoration")
    # Older layouts stored decorations in fontStyle.
    if style in TEXT_DECORATIONS:
        decoration = decoration or style
        style = "normal"
    text_align = raw.get("textAlign")
    if text_align is not None and text_align not in TEXT_ALIGNS:
        text_align = "left"
    max_width = _float(raw.get("maxWidth"), None)
    rich = rich_text_from_json(raw.get("richText"))
    default_text = raw.get("defaultText")
    return TextLayerConfig(
        id=str(raw.get("id")),
        x=_float(raw.get("x"), 0.0),
        y=_float(raw.get("y"), 0.0),
        x_percent=_float(raw.get("xPercent"), None),
        y_percent=_float(raw.get("yPercent"), None),
        font_size=max(1.0, _float(raw.get("fontSize"), 16.0)),
        color=_str(raw.get("color"), "#000000"),
        font_weight=_str(raw.get("fontWeight"), "normal"),
        font_family=_str(raw.get("fontFamily"), "Arial"),
        font_style=_choice(style, FONT_STYLES, "normal"),
        text_decoration=_choice(decoration, TEXT_DECORATIONS, "") or None,
        letter_spacing=_float(raw.get("letterSpacing"), 0.0),
        line_height=_float(raw.get("lineHeight"), None) or DEFAULT_LINE_HEIGHT,
        max_width=max_width if max_width and max_width > 0 else None,
        text_align=text_align,
        default_text=default_text if isinstance(default_text, str) else None,
        use_default_text=_bool(raw.get("useDefaultText"), False),
        rich_text=tuple(rich) if rich else None,
        visible=_bool(raw.get("visible"), True),
        z_index=_int(raw.get("zIndex"), DEFAULT_TEXT_Z_INDEX),
    )


def _parse_crop(raw: Any) -> CropRect | None:
    if not isinstance(raw, dict):
        return None
    crop = CropRect(
        x=min(max(_float(raw.get("x"), 0.0), 0.0), 1.0),
        y=min(max(_float(raw.get("y"), 0.0), 0.0), 1.0),
        width=min(max(_float(raw.get("width"), 1.0), 0.0), 1.0),
        height=min(max(_float(raw.get("height"), 1.0), 0.0), 1.0),
    )
    if crop.width <= 0 or crop.height <= 0:
        return None
    return crop


def _parse_mask(raw: Any) -> MaskConfig | None:
    if not isinstance(raw, dict):
        return None
    mask_type = _choice(raw.get("type"), MASK_TYPES, "none")
    if mask_type == "none":
        return None
    points: list[tuple[float, float]] = []
    for point in raw.get("points") or []:
        if not isinstance(point, dict):
            continue
        px = _float(point.get("x"), None)
        py = _float(point.get("y"), None)
        if px is not None and py is not None:
            points.append((px, py))
    return MaskConfig(
        type=mask_type,
        border_radius=_float(raw.get("borderRadius"), None) or DEFAULT_BORDER_RADIUS,
        points=tuple(points),
    )


def _parse_photo_layer(raw: dict) -> PhotoLayerConfig:
    return PhotoLayerConfig(
        id=str(raw.get("id")),
        src=raw.get("src") if isinstance(raw.get("src"), str) else "",
        type=_choice(raw.get("type"), PHOTO_TYPES, "photo"),
        x=_float(raw.get("x"), 0.0),
        y=_float(raw.get("y"), 0.0),
        width=_float(raw.get("width"), None),
        height=_float(raw.get("height"), None),
        x_percent=_float(raw.get("xPercent"), None),
        y_percent=_float(raw.get("yPercent"), None),
        width_percent=_float(raw.get("widthPercent"), None),
        height_percent=_float(raw.get("heightPercent"), None),
        z_index=_int(raw.get("zIndex"), DEFAULT_PHOTO_Z_INDEX),
        fit_mode=_choice(raw.get("fitMode"), FIT_MODES, "contain"),
        crop=_parse_crop(raw.get("crop")),
        mask=_parse_mask(raw.get("mask")),
        opacity=min(max(_float(raw.get("opacity"), 1.0), 0.0), 1.0),
        rotation=min(max(_float(raw.get("rotation"), 0.0), -180.0), 180.0),
        maintain_aspect_ratio=_bool(raw.get("maintainAspectRatio"), False),
        original_width=_float(raw.get("originalWidth"), None),
        original_height=_float(raw.get("originalHeight"), None),
    )


def _parse_qr_layer(raw: dict) -> QRCodeLayerConfig:
    qr_data = raw.get("qrData")
    return QRCodeLayerConfig(
        id=str(raw.get("id")),
        qr_data=qr_data if isinstance(qr_data, str) else "{{CERTIFICATE_URL}}",
        error_correction_level=_choice(
            raw.get("errorCorrectionLevel"), ERROR_CORRECTION_LEVELS, "M"
        ),
        display_type=_choice(raw.get("displayType"), QR_DISPLAY_TYPES, "qr_code"),
        x=_float(raw.get("x"), 0.0),
        y=_float(raw.get("y"), 0.0),
        width=_float(raw.get("width"), None),
        height=_float(raw.get("height"), None),
        x_percent=_float(raw.get("xPercent"), None),
        y_percent=_float(raw.get("yPercent"), None),
        width_percent=_float(raw.get("widthPercent"), None),
        height_percent=_float(raw.get("heightPercent"), None),
        z_index=_int(raw.get("zIndex"), DEFAULT_QR_Z_INDEX),
        foreground_color=_str(raw.get("foregroundColor"), "#000000"),
        background_color=_str(raw.get("backgroundColor"), "#FFFFFF"),
        opacity=min(max(_float(raw.get("opacity"), 1.0), 0.0), 1.0),
        rotation=min(max(_float(raw.get("rotation"), 0.0), -180.0), 180.0),
        maintain_aspect_ratio=_bool(raw.get("maintainAspectRatio"), True),
        margin=max(0, _int(raw.get("margin"), 0)),
        font_size=_float(raw.get("fontSize"), None),
        font_family=_str(raw.get("fontFamily"), "Arial"),
        font_weight=_str(raw.get("fontWeight"), "normal"),
        text_align=_choice(raw.get("textAlign"), ("left", "center", "right"), "left"),
    )


def _layer_dicts(raw: Any) -> list[dict]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [item for item in raw if isinstance(item, dict) and item.get("id") is not None]


def _parse_mode(raw: Any) -> ModeLayers:
    if not isinstance(raw, dict):
        return ModeLayers()
    return ModeLayers(
        text_layers=tuple(_parse_text_layer(item) for item in _layer_dicts(raw.get("textLayers"))),
        photo_layers=tuple(
            _parse_photo_layer(item) for item in _layer_dicts(raw.get("photoLayers"))
        ),
        qr_layers=tuple(_parse_qr_layer(item) for item in _layer_dicts(raw.get("qrLayers"))),
    )


def _parse_canvas(raw: Any) -> CanvasConfig:
    width = DEFAULT_CANVAS_WIDTH
    height = DEFAULT_CANVAS_HEIGHT
    if isinstance(raw, dict):
        width_val = _float(raw.get("width"), None)
        height_val = _float(raw.get("height"), None)
        if width_val and width_val > 0:
            width = width_val
        if height_val and height_val > 0:
            height = height_val
    return CanvasConfig(width=width, height=height)


def parse_layout_config(payload: Any, *, strict: bool = False) -> TemplateLayoutConfig:
    """Build a :class:`TemplateLayoutConfig` from the editor's JSON payload.

    The default mode sanitises: bad numbers and unknown enum values fall back
    to defaults and malformed layers are dropped. ``strict=True`` rejects a
    payload that is not a mapping or has no ``canvas`` block.
    """

    if not isinstance(payload, dict):
        if strict:
            raise LayoutConfigError("Layout config must be a JSON object")
        payload = {}
    if strict and not isinstance(payload.get("canvas"), dict):
        raise LayoutConfigError("Layout config is missing the canvas block")
    score_raw = payload.get("score")
    last_saved = payload.get("lastSavedAt")
    return TemplateLayoutConfig(
        certificate=_parse_mode(payload.get("certificate")),
        canvas=_parse_canvas(payload.get("canvas")),
        score=_parse_mode(score_raw) if isinstance(score_raw, dict) else None,
        version=_str(str(payload.get("version") or ""), LAYOUT_VERSION),
        last_saved_at=last_saved if isinstance(last_saved, str) else None,
    )


def _drop_none(data: dict) -> dict:
    return {key: value for key, value in data.items() if value is not None}


def _dump_text_layer(layer: TextLayerConfig) -> dict:
    return _drop_none(
        {
            "id": layer.id,
            "x": layer.x,
            "y": layer.y,
            "xPercent": layer.x_percent,
            "yPercent": layer.y_percent,
            "fontSize": layer.font_size,
            "color": layer.color,
            "fontWeight": layer.font_weight,
            "fontFamily": layer.font_family,
            "fontStyle": layer.font_style,
            "textDecoration": layer.text_decoration,
            "letterSpacing": layer.letter_spacing or None,
            "lineHeight": layer.line_height,
            "maxWidth": layer.max_width,
            "textAlign": layer.text_align,
            "defaultText": layer.default_text,
            "useDefaultText": layer.use_default_text or None,
            "richText": rich_text_to_json(layer.rich_text) if layer.rich_text else None,
            "visible": None if layer.visible else False,
            "zIndex": layer.z_index,
        }
    )


def _dump_box(layer: PhotoLayerConfig | QRCodeLayerConfig) -> dict:
    return {
        "x": layer.x,
        "y": layer.y,
        "width": layer.width,
        "height": layer.height,
        "xPercent": layer.x_percent,
        "yPercent": layer.y_percent,
        "widthPercent": layer.width_percent,
        "heightPercent": layer.height_percent,
        "zIndex": layer.z_index,
        "opacity": layer.opacity,
        "rotation": layer.rotation,
        "maintainAspectRatio": layer.maintain_aspect_ratio,
    }


def _dump_photo_layer(layer: PhotoLayerConfig) -> dict:
    data = {"id": layer.id, "type": layer.type, "src": layer.src}
    data.update(_dump_box(layer))
    data.update(
        {
            "fitMode": layer.fit_mode,
            "crop": layer.crop._asdict() if layer.crop else None,
            "mask": (
                {
                    "type": layer.mask.type,
                    "borderRadius": layer.mask.border_radius,
                    "points": [{"x": px, "y": py} for px, py in layer.mask.points],
                }
                if layer.mask
                else None
            ),
            "originalWidth": layer.original_width,
            "originalHeight": layer.original_height,
        }
    )
    return _drop_none(data)


def _dump_qr_layer(layer: QRCodeLayerConfig) -> dict:
    data = {"id": layer.id, "type": "qr_code", "qrData": layer.qr_data}
    data.update(_dump_box(layer))
    data.update(
        {
            "errorCorrectionLevel": layer.error_correction_level,
            "displayType": layer.display_type,
            "foregroundColor": layer.foreground_color,
            "backgroundColor": layer.background_color,
            "margin": layer.margin,
            "fontSize": layer.font_size,
            "fontFamily": layer.font_family,
            "fontWeight": layer.font_weight,
            "textAlign": layer.text_align,
        }
    )
    return _drop_none(data)


def _dump_mode(mode: ModeLayers) -> dict:
    return {
        "textLayers": [_dump_text_layer(layer) for layer in mode.text_layers],
        "photoLayers": [_dump_photo_layer(layer) for layer in mode.photo_layers],
        "qrLayers": [_dump_qr_layer(layer) for layer in mode.qr_layers],
    }


def dump_layout_config(config: TemplateLayoutConfig) -> dict:
    data: dict[str, Any] = {
        "certificate": _dump_mode(config.certificate),
        "canvas": {"width": config.canvas.width, "height": config.canvas.height},
        "version": config.version,
        "lastSavedAt": config.last_saved_at,
    }
    if config.score is not None:
        data["score"] = _dump_mode(config.score)
    return data


@dataclass
class LayoutValidationResult:
    is_valid: bool
    missing_fields: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _percent_errors(mode_name: str, layer, names: Iterable[str]) -> list[str]:
    errors: list[str] = []
    for name in names:
        value = getattr(layer, name)
        if value is not None and not 0.0 <= value <= 1.0:
            errors.append(f"{mode_name}.{layer.id}: {name}={value} outside 0..1")
    return errors


def validate_layout_config(config: TemplateLayoutConfig) -> LayoutValidationResult:
    errors: list[str] = []
    if config.canvas.width <= 0 or config.canvas.height <= 0:
        errors.append("canvas dimensions must be positive")

    text_ids = {layer.id for layer in config.certificate.text_layers}
    missing = [name for name in REQUIRED_CERTIFICATE_FIELDS if name not in text_ids]

    modes = [("certificate", config.certificate)]
    if config.score is not None:
        modes.append(("score", config.score))
    for mode_name, mode in modes:
        seen: set[str] = set()
        for layer_id in mode.layer_ids():
            if layer_id in seen:
                errors.append(f"{mode_name}: duplicate layer id {layer_id!r}")
            seen.add(layer_id)
        for layer in mode.text_layers:
            errors.extend(_percent_errors(mode_name, layer, ("x_percent", "y_percent")))
        for layer in (*mode.photo_layers, *mode.qr_layers):
            errors.extend(
                _percent_errors(
                    mode_name,
                    layer,
                    ("x_percent", "y_percent", "width_percent", "height_percent"),
                )
            )

    return LayoutValidationResult(
        is_valid=not missing and not errors,
        missing_fields=missing,
        errors=errors,
    )


def migrate_text_layer(layer: TextLayerConfig, canvas: CanvasConfig) -> TextLayerConfig:
    """Fill in percentage coordinates from pixel ones; keeps pixel values."""

    if layer.x_percent is not None and layer.y_percent is not None:
        return layer
    return replace(
        layer,
        x_percent=layer.x_percent if layer.x_percent is not None else layer.x / canvas.width,
        y_percent=layer.y_percent if layer.y_percent is not None else layer.y / canvas.height,
    )


def migrate_box_layer(layer, canvas: CanvasConfig):
    updates: dict[str, float] = {}
    if layer.x_percent is None:
        updates["x_percent"] = layer.x / canvas.width
    if layer.y_percent is None:
        updates["y_percent"] = layer.y / canvas.height
    if layer.width_percent is None and layer.width is not None:
        updates["width_percent"] = layer.width / canvas.width
    if layer.height_percent is None and layer.height is not None:
        updates["height_percent"] = layer.height / canvas.height
    if not updates:
        return layer
    return replace(layer, **updates)


def _migrate_mode(mode: ModeLayers, canvas: CanvasConfig) -> ModeLayers:
    return ModeLayers(
        text_layers=tuple(migrate_text_layer(layer, canvas) for layer in mode.text_layers),
        photo_layers=tuple(migrate_box_layer(layer, canvas) for layer in mode.photo_layers),
        qr_layers=tuple(migrate_box_layer(layer, canvas) for layer in mode.qr_layers),
    )


def migrate_layout_config(config: TemplateLayoutConfig) -> TemplateLayoutConfig:
    return replace(
        config,
        certificate=_migrate_mode(config.certificate, config.canvas),
        score=_migrate_mode(config.score, config.canvas) if config.score else None,
    )
