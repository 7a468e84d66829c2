import pytest

from certlayout.errors import LayoutConfigError
from certlayout.models import CanvasConfig, ModeLayers, TemplateLayoutConfig, TextLayerConfig
from certlayout.shared.layout_config import (
    dump_layout_config,
    migrate_layout_config,
    migrate_text_layer,
    parse_layout_config,
    validate_layout_config,
)
from certlayout.shared.rich_text import TextSpan


def _payload(**extra):
    payload = {
        "canvas": {"width": 1000, "height": 700},
        "certificate": {
            "textLayers": [
                {"id": "name", "xPercent": 0.5, "yPercent": 0.4, "fontSize": 40, "maxWidth": 600},
                {"id": "certificate_no", "xPercent": 0.1, "yPercent": 0.9, "fontSize": 18},
                {"id": "issue_date", "xPercent": 0.7, "yPercent": 0.9, "fontSize": 18},
            ],
            "photoLayers": [
                {
                    "id": "logo",
                    "type": "logo",
                    "src": "logo.png",
                    "xPercent": 0.05,
                    "yPercent": 0.05,
                    "widthPercent": 0.1,
                    "heightPercent": 0.1,
                    "zIndex": 120,
                    "fitMode": "cover",
                    "mask": {"type": "roundedRect", "borderRadius": 8},
                }
            ],
            "qrLayers": [
                {"id": "qr", "qrData": "{{CERTIFICATE_URL}}", "xPercent": 0.8, "yPercent": 0.7,
                 "widthPercent": 0.1, "heightPercent": 0.1}
            ],
        },
        "version": "1.0",
        "lastSavedAt": "2025-01-01T00:00:00Z",
    }
    payload.update(extra)
    return payload


def test_parse_reads_camel_case_fields():
    config = parse_layout_config(_payload())
    assert config.canvas == CanvasConfig(1000, 700)
    name = config.certificate.text_layers[0]
    assert name.id == "name"
    assert name.x_percent == 0.5
    assert name.max_width == 600
    assert name.z_index == 100
    logo = config.certificate.photo_layers[0]
    assert logo.fit_mode == "cover"
    assert logo.mask.type == "roundedRect" and logo.mask.border_radius == 8
    qr = config.certificate.qr_layers[0]
    assert qr.z_index == 50 and qr.margin == 0 and qr.error_correction_level == "M"
    assert config.score is None and not config.is_dual


def test_unknown_enums_and_bad_numbers_fall_back():
    payload = _payload()
    payload["certificate"]["textLayers"][0].update(
        {"textAlign": "diagonal", "fontSize": "huge", "maxWidth": -5, "letterSpacing": "nan"}
    )
    payload["certificate"]["photoLayers"][0].update({"fitMode": "stretchy", "opacity": 3, "rotation": 720})
    payload["certificate"]["qrLayers"][0]["errorCorrectionLevel"] = "Z"
    config = parse_layout_config(payload)
    name = config.certificate.text_layers[0]
    assert name.text_align == "left"
    assert name.font_size == 16.0
    assert name.max_width is None
    assert name.letter_spacing == 0.0
    logo = config.certificate.photo_layers[0]
    assert logo.fit_mode == "contain"
    assert logo.opacity == 1.0
    assert logo.rotation == 180.0
    assert config.certificate.qr_layers[0].error_correction_level == "M"


def test_decoration_stored_in_font_style_is_moved():
    payload = _payload()
    payload["certificate"]["textLayers"][0]["fontStyle"] = "underline"
    layer = parse_layout_config(payload).certificate.text_layers[0]
    assert layer.font_style == "normal"
    assert layer.text_decoration == "underline"


def test_strict_mode_rejects_bad_payloads():
    with pytest.raises(LayoutConfigError):
        parse_layout_config([], strict=True)
    with pytest.raises(LayoutConfigError):
        parse_layout_config({"certificate": {}}, strict=True)
    lenient = parse_layout_config([])
    assert lenient.canvas == CanvasConfig(1500, 2121)


def test_dump_then_parse_keeps_layers():
    payload = _payload()
    payload["certificate"]["textLayers"][0]["richText"] = [
        {"text": "Andi ", "fontWeight": "bold"},
        {"text": "Budi"},
    ]
    payload["score"] = {"textLayers": [{"id": "nilai", "xPercent": 0.5, "yPercent": 0.5, "zIndex": 7}]}
    config = parse_layout_config(payload)
    again = TemplateLayoutConfig.from_dict(config.to_dict())
    assert again == config
    assert again.certificate.text_layers[0].rich_text == (TextSpan("Andi ", font_weight="bold"), TextSpan("Budi"))
    assert again.score.text_layers[0].z_index == 7
    assert dump_layout_config(config)["certificate"]["textLayers"][0]["richText"][0]["fontWeight"] == "bold"


def test_layers_for_mode():
    config = parse_layout_config(_payload())
    assert config.layers_for("score") == ModeLayers()
    with pytest.raises(ValueError):
        config.layers_for("back")


def test_validate_reports_missing_fields_and_geometry_errors():
    payload = _payload()
    payload["certificate"]["textLayers"] = [
        {"id": "name", "xPercent": 1.5, "yPercent": 0.4},
        {"id": "name", "xPercent": 0.5, "yPercent": 0.4},
    ]
    result = validate_layout_config(parse_layout_config(payload))
    assert not result.is_valid
    assert result.missing_fields == ["certificate_no", "issue_date"]
    assert any("duplicate layer id 'name'" in error for error in result.errors)
    assert any("x_percent=1.5" in error for error in result.errors)


def test_validate_accepts_complete_layout():
    result = validate_layout_config(parse_layout_config(_payload()))
    assert result.is_valid
    assert result.errors == []


def test_migrate_fills_percentages_from_pixels():
    canvas = CanvasConfig(1000, 500)
    legacy = TextLayerConfig(id="name", x=250, y=100)
    migrated = migrate_text_layer(legacy, canvas)
    assert migrated.x_percent == 0.25
    assert migrated.y_percent == 0.2
    assert migrated.x == 250

    modern = TextLayerConfig(id="name", x=1, y=1, x_percent=0.5, y_percent=0.5)
    assert migrate_text_layer(modern, canvas) is modern


def test_migrate_layout_config_covers_box_layers():
    config = parse_layout_config(
        {
            "canvas": {"width": 800, "height": 600},
            "certificate": {
                "photoLayers": [{"id": "sig", "src": "s.png", "x": 400, "y": 300, "width": 80, "height": 60}]
            },
        }
    )
    photo = migrate_layout_config(config).certificate.photo_layers[0]
    assert (photo.x_percent, photo.y_percent) == (0.5, 0.5)
    assert (photo.width_percent, photo.height_percent) == (0.1, 0.1)
