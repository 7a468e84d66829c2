import pytest

from certlayout.errors import LayerRenderError
from certlayout.models import QRCodeLayerConfig
from certlayout.services.qr import (
    MIN_QR_SIZE,
    build_certificate_url,
    build_qr_values,
    draw_qr_layer,
    process_qr_placeholders,
    qr_image,
    qr_matrix,
    wrap_link_text,
)
from certlayout.services.surfaces import Rect
from certlayout.shared.fonts import FontSpec


def test_certificate_url():
    assert build_certificate_url("https://certs.example/", "abc123") == "https://certs.example/certificate/abc123"


def test_placeholder_substitution_leaves_no_tokens():
    values = {"CERTIFICATE_URL": "https://certs.example/certificate/abc"}
    result = process_qr_placeholders("https://x/{{CERTIFICATE_URL}}", values)
    assert result == "https://x/https://certs.example/certificate/abc"
    assert "{{" not in result


def test_unknown_and_empty_placeholders_are_removed():
    values = build_qr_values("https://c.example", "p1", certificate_no="NO-1")
    assert process_qr_placeholders("{{CERTIFICATE_NO}}|{{NAME}}|{{FOO}}|{{ PUBLIC_ID }}", values) == "NO-1|||p1"


def test_qr_matrix_respects_margin():
    bare = qr_matrix("hello", "L", margin=0)
    padded = qr_matrix("hello", "L", margin=2)
    assert len(padded) == len(bare) + 4
    assert not any(padded[0])


def test_qr_image_is_square_with_given_colours():
    image = qr_image(qr_matrix("hello", "M", margin=1), 42, "#FF0000", "#00FF00")
    assert image.size == (42, 42)
    assert image.getpixel((0, 0)) == (0, 255, 0, 255)


def test_qr_layer_is_never_smaller_than_minimum(fake_surface):
    layer = QRCodeLayerConfig(id="qr")
    draw_qr_layer(fake_surface, layer, "https://example.com", Rect(5, 5, 8, 8))
    (_, size, dest, *_), = fake_surface.images()
    assert size == (MIN_QR_SIZE, MIN_QR_SIZE)
    assert (dest.width, dest.height) == (MIN_QR_SIZE, MIN_QR_SIZE)


def test_qr_overflow_raises_layer_error(fake_surface):
    layer = QRCodeLayerConfig(id="qr", error_correction_level="H")
    with pytest.raises(LayerRenderError) as excinfo:
        draw_qr_layer(fake_surface, layer, "x" * 5000, Rect(0, 0, 100, 100))
    assert excinfo.value.layer_id == "qr"


def test_link_text_wraps_on_slashes(fake_surface):
    fake_surface.set_font(FontSpec(size=10))
    lines = wrap_link_text(fake_surface, "https://certs.example/certificate/abc", 6 * 20)
    assert lines == ["https:/", "certs.example", "certificate/abc"]


def test_link_display_draws_text_instead_of_matrix(fake_surface):
    layer = QRCodeLayerConfig(id="qr", display_type="link", font_size=10, text_align="center")
    draw_qr_layer(fake_surface, layer, "https://c.example/certificate/a", Rect(0, 0, 400, 100))
    assert fake_surface.images() == []
    texts = fake_surface.texts()
    assert texts
    assert all(op[5] == "center" and op[2] == 200 for op in texts)
