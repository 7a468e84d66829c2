import pytest
from PIL import Image

from certlayout.errors import LayerRenderError
from certlayout.models import (
    CanvasConfig,
    ModeLayers,
    PhotoLayerConfig,
    QRCodeLayerConfig,
    TemplateLayoutConfig,
    TextLayerConfig,
)
from certlayout.services.compositor import (
    RenderOptions,
    ordered_layers,
    render,
    resolve_scale,
    resolve_text_content,
)
from certlayout.shared.rich_text import TextSpan, rich_text_to_plain_text


def _config(text_layers=(), photo_layers=(), qr_layers=(), score=None):
    return TemplateLayoutConfig(
        certificate=ModeLayers(tuple(text_layers), tuple(photo_layers), tuple(qr_layers)),
        canvas=CanvasConfig(500, 500),
        score=score,
    )


def test_layers_are_drawn_in_z_order(make_surface):
    config = _config(
        text_layers=[TextLayerConfig(id="name", x_percent=0.5, y_percent=0.5, z_index=10)],
        photo_layers=[
            PhotoLayerConfig(id="frame", width_percent=1.0, height_percent=1.0, z_index=20),
            PhotoLayerConfig(id="background", width_percent=1.0, height_percent=1.0),
        ],
    )
    assert [layer.id for layer in ordered_layers(config, "certificate")] == ["background", "name", "frame"]

    surface = make_surface(width=500, height=500)
    picture = Image.new("RGB", (10, 10))
    report = render(
        config, "certificate", {"name": "Andi", "frame": picture, "background": picture}, surface
    )
    assert report.drawn == ["background", "name", "frame"]
    assert [op[0] for op in surface.ops] == ["image", "text", "image"]


def test_photo_at_text_z_index_paints_above_text():
    config = _config(
        text_layers=[TextLayerConfig(id="t", z_index=5)],
        photo_layers=[PhotoLayerConfig(id="p", z_index=5)],
        qr_layers=[QRCodeLayerConfig(id="q", z_index=5)],
    )
    assert [layer.id for layer in ordered_layers(config, "certificate")] == ["t", "p", "q"]


def test_invisible_and_empty_layers_are_skipped(fake_surface):
    config = _config(
        text_layers=[
            TextLayerConfig(id="name", visible=False),
            TextLayerConfig(id="kelas"),
            TextLayerConfig(id="title", default_text="SERTIFIKAT"),
        ],
        photo_layers=[PhotoLayerConfig(id="logo")],
    )
    report = render(config, "certificate", {"name": "Andi", "kelas": "  "}, fake_surface)
    assert report.drawn == ["title"]
    assert sorted(report.skipped) == ["kelas", "logo", "name"]
    assert [op[1] for op in fake_surface.texts()] == ["SERTIFIKAT"]


def test_default_text_fills_variables():
    layer = TextLayerConfig(
        id="description",
        use_default_text=True,
        rich_text=(TextSpan("Diberikan kepada "), TextSpan("{name}", font_weight="bold")),
    )
    spans = resolve_text_content(layer, {"description": "ignored", "name": "Budi"})
    assert rich_text_to_plain_text(spans) == "Diberikan kepada Budi"
    assert spans[1].font_weight == "bold"


def test_supplied_value_uses_layer_base_style():
    layer = TextLayerConfig(id="name", font_weight="bold", font_style="italic", color="#123456")
    (span,) = resolve_text_content(layer, {"name": "Citra"})
    assert span == TextSpan(
        "Citra", font_weight="bold", font_family="Arial", font_size=16.0, color="#123456", font_style="italic"
    )


def test_score_mode_populates_prestasi(fake_surface):
    score = ModeLayers(
        text_layers=(
            TextLayerConfig(id="nilai", x_percent=0.3, y_percent=0.5),
            TextLayerConfig(id="prestasi", x_percent=0.6, y_percent=0.5),
        )
    )
    config = _config(score=score)
    report = render(config, "score", {"nilai": "92"}, fake_surface)
    assert report.mode == "score"
    assert [op[1] for op in fake_surface.texts()] == ["92", "SANGAT BAIK"]


def test_layer_filter_restricts_drawing(fake_surface):
    config = _config(
        text_layers=[
            TextLayerConfig(id="name", x_percent=0.5, y_percent=0.5),
            TextLayerConfig(id="kelas", x_percent=0.5, y_percent=0.6),
        ]
    )
    options = RenderOptions(layer_ids=frozenset({"kelas"}))
    report = render(config, "certificate", {"name": "Andi", "kelas": "7A"}, fake_surface, options=options)
    assert report.drawn == ["kelas"]
    assert report.skipped == ["name"]


def test_missing_photo_file_names_the_layer(fake_surface, tmp_path):
    config = _config(photo_layers=[PhotoLayerConfig(id="signature", src=str(tmp_path / "nope.png"))])
    with pytest.raises(LayerRenderError) as excinfo:
        render(config, "certificate", {}, fake_surface)
    assert excinfo.value.layer_id == "signature"


def test_qr_layer_draws_certificate_url(fake_surface):
    config = _config(
        qr_layers=[QRCodeLayerConfig(id="qr", x_percent=0.8, y_percent=0.8, width_percent=0.1, height_percent=0.1)]
    )
    options = RenderOptions(qr_values={"CERTIFICATE_URL": "https://c.example/certificate/abc"})
    report = render(config, "certificate", {}, fake_surface, options=options)
    assert report.drawn == ["qr"]
    (_, size, dest, *_), = fake_surface.images()
    assert size == (100, 100)
    assert (dest.x, dest.y) == (800, 800)


def test_qr_layer_without_data_is_skipped(fake_surface):
    config = _config(qr_layers=[QRCodeLayerConfig(id="qr", width=50, height=50)])
    report = render(config, "certificate", {}, fake_surface)
    assert report.skipped == ["qr"]
    assert fake_surface.images() == []


def test_scale_follows_surface_width(make_surface):
    config = _config(text_layers=[TextLayerConfig(id="name", x=100, y=100, font_size=20)])
    surface = make_surface(width=1000, height=1000)
    assert resolve_scale(config, surface, RenderOptions()) == 2.0
    assert resolve_scale(config, surface, RenderOptions(scale=0.5)) == 0.5

    render(config, "certificate", {"name": "Andi"}, surface)
    (_, text, x, _, _, _, font), = surface.texts()
    assert font.size == 40
    assert x == pytest.approx(200 - len(text) * 6.0 * 40 / 10 / 2)


def test_surface_failure_becomes_layer_error(make_surface):
    class BrokenSurface(make_surface):
        def draw_text(self, *args, **kwargs):
            raise RuntimeError("boom")

    config = _config(text_layers=[TextLayerConfig(id="name")])
    with pytest.raises(LayerRenderError) as excinfo:
        render(config, "certificate", {"name": "Andi"}, BrokenSurface())
    assert excinfo.value.layer_id == "name"
    assert isinstance(excinfo.value.cause, RuntimeError)


def test_native_size_photo_scales_with_output(make_surface):
    config = _config(photo_layers=[PhotoLayerConfig(id="stamp", x=10, y=10, width=100, height=100, fit_mode="none")])
    surface = make_surface(width=1000, height=1000)
    render(config, "certificate", {"stamp": Image.new("RGB", (30, 20))}, surface)
    (_, _, dest, frame, *_), = surface.images()
    assert frame == (20, 20, 200, 200)
    assert dest == (20, 20, 60, 40)
