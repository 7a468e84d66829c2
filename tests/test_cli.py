import json
import os

import pytest
from click.testing import CliRunner
from PIL import Image

from manage import cli

LAYOUT = {
    "canvas": {"width": 200, "height": 100},
    "certificate": {
        "textLayers": [
            {"id": "name", "xPercent": 0.5, "yPercent": 0.4, "fontSize": 14},
            {"id": "certificate_no", "xPercent": 0.1, "yPercent": 0.9, "fontSize": 8},
            {"id": "issue_date", "xPercent": 0.7, "yPercent": 0.9, "fontSize": 8},
        ],
        "qrLayers": [
            {"id": "qr", "xPercent": 0.8, "yPercent": 0.1, "widthPercent": 0.15, "heightPercent": 0.3}
        ],
    },
}


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.setenv("SITE_ROOT", str(tmp_path / "site"))
    monkeypatch.setenv("CERTLAYOUT_FONT_DIR", str(tmp_path / "fonts"))
    monkeypatch.setenv("CERTLAYOUT_BASE_URL", "https://certs.example")
    return CliRunner()


def _write_json(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_validate_ok(runner, tmp_path):
    layout = _write_json(tmp_path / "layout.json", LAYOUT)
    result = runner.invoke(cli, ["validate", layout])
    assert result.exit_code == 0
    assert "OK" in result.output


def test_validate_reports_missing_fields(runner, tmp_path):
    payload = {"canvas": LAYOUT["canvas"], "certificate": {"textLayers": [LAYOUT["certificate"]["textLayers"][0]]}}
    layout = _write_json(tmp_path / "layout.json", payload)
    result = runner.invoke(cli, ["validate", layout])
    assert result.exit_code == 1
    assert "missing field: certificate_no" in result.output


def test_unreadable_layout_is_a_click_error(runner, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    result = runner.invoke(cli, ["validate", str(path)])
    assert result.exit_code == 1
    assert "Cannot read layout" in result.output


def test_migrate_writes_percentages(runner, tmp_path):
    legacy = {"canvas": {"width": 200, "height": 100}, "certificate": {"textLayers": [{"id": "name", "x": 50, "y": 25}]}}
    layout = _write_json(tmp_path / "legacy.json", legacy)
    target = tmp_path / "out" / "migrated.json"
    result = runner.invoke(cli, ["migrate", layout, "--output", str(target)])
    assert result.exit_code == 0, result.output
    migrated = json.loads(target.read_text(encoding="utf-8"))
    name = migrated["certificate"]["textLayers"][0]
    assert (name["xPercent"], name["yPercent"]) == (0.25, 0.25)


def test_render_png_to_output(runner, tmp_path):
    layout = _write_json(tmp_path / "layout.json", LAYOUT)
    values = _write_json(tmp_path / "values.json", {"name": "Andi", "certificate_no": "NO-1"})
    output = tmp_path / "andi.png"
    result = runner.invoke(
        cli, ["render", layout, "--values", values, "--public-id", "abc", "--width", "400", "--output", str(output)]
    )
    assert result.exit_code == 0, result.output
    with Image.open(output) as image:
        assert image.size == (400, 200)


def test_render_pdf_into_store(runner, tmp_path):
    layout = _write_json(tmp_path / "layout.json", LAYOUT)
    result = runner.invoke(cli, ["render", layout, "--format", "pdf", "--store", "Kelas 7A"])
    assert result.exit_code == 0, result.output
    stored_dir = tmp_path / "site" / "certificates"
    pdfs = [os.path.join(root, name) for root, _, names in os.walk(stored_dir) for name in names]
    assert len(pdfs) == 1
    assert pdfs[0].endswith(os.path.join("kelas-7a", "layout.pdf"))
    with open(pdfs[0], "rb") as fh:
        assert fh.read(4) == b"%PDF"


def test_render_requires_a_destination(runner, tmp_path):
    layout = _write_json(tmp_path / "layout.json", LAYOUT)
    result = runner.invoke(cli, ["render", layout])
    assert result.exit_code == 2
    assert "--output or --store" in result.output
