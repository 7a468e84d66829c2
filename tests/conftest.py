import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certlayout.services.surfaces import Surface, TextMetrics


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


class FakeSurface(Surface):
    """Deterministic surface: every character is ``char_width * size / 10`` wide.

    Calls are recorded in ``ops`` so tests can assert on positions.
    """

    def __init__(self, width=1000, height=1000, char_width=6.0, ascent=None, descent=None):
        self.width = width
        self.height = height
        self.char_width = char_width
        self.ascent = ascent
        self.descent = descent
        self.font = None
        self.ops = []

    def set_font(self, font):
        self.font = font

    def _size(self):
        return self.font.size if self.font is not None else 10

    def measure_text(self, text):
        size = self._size()
        ascent = size * 0.75 if self.ascent is None else self.ascent
        descent = size * 0.25 if self.descent is None else self.descent
        return TextMetrics(len(text) * self.char_width * size / 10, ascent, descent)

    def draw_text(self, text, x, y, fill, align="left"):
        self.ops.append(("text", text, x, y, fill, align, self.font))

    def fill_rect(self, x, y, width, height, fill):
        self.ops.append(("rect", x, y, width, height, fill))

    def draw_image(self, image, dest, *, frame=None, mask=None, opacity=1.0, rotation=0.0):
        self.ops.append(("image", image.size, dest, frame, mask, opacity, rotation))

    def texts(self):
        return [op for op in self.ops if op[0] == "text"]

    def rects(self):
        return [op for op in self.ops if op[0] == "rect"]

    def images(self):
        return [op for op in self.ops if op[0] == "image"]


@pytest.fixture
def fake_surface():
    return FakeSurface()


@pytest.fixture
def font_registry(tmp_path):
    from certlayout.shared.fonts import FontRegistry

    return FontRegistry(str(tmp_path / "fonts"), str(tmp_path / "fonts" / "missing.ttf"))


@pytest.fixture
def make_surface():
    return FakeSurface
