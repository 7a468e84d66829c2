from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import Any, Mapping, NamedTuple

from PIL import Image
from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..config import Settings
from ..logging_setup import get_logger
from ..models.layout import TemplateLayoutConfig
from ..shared.fonts import FontRegistry
from ..shared.storage import certificate_paths, sha256_file, write_atomic
from .compositor import RenderOptions, RenderReport, render
from .image_store import ImageStore, load_image
from .pdf_surface import ReportLabSurface
from .pillow_surface import PillowSurface

logger = get_logger("render")

Background = Image.Image | str | bytes | None


@dataclass(frozen=True)
class PreviewResult:
    image_base64: str
    warnings: tuple[str, ...]

    @property
    def data_url(self) -> str:
        return f"data:image/png;base64,{self.image_base64}"


class CertificateFile(NamedTuple):
    rel_path: str
    abs_path: str
    sha256: str


def _output_size(config: TemplateLayoutConfig, background: Image.Image | None, width: int | None) -> tuple[int, int]:
    if background is not None:
        src_w, src_h = background.size
    else:
        src_w, src_h = round(config.canvas.width), round(config.canvas.height)
    if not width:
        return max(1, src_w), max(1, src_h)
    return max(1, int(width)), max(1, round(width * src_h / src_w))


def _open_background(background: Background) -> Image.Image | None:
    if background is None or isinstance(background, Image.Image):
        return background
    return load_image(background)


def render_image(
    config: TemplateLayoutConfig,
    mode: str,
    field_values: Mapping[str, Any] | None,
    *,
    fonts: FontRegistry,
    background: Background = None,
    width: int | None = None,
    images: ImageStore | Mapping[str, Image.Image] | None = None,
    options: RenderOptions | None = None,
) -> tuple[Image.Image, RenderReport]:
    """Render onto the background image (or a white page) at ``width`` pixels."""

    base = _open_background(background)
    size = _output_size(config, base, width)
    if base is None:
        surface = PillowSurface.blank(size[0], size[1], fonts)
    else:
        if base.size != size:
            base = base.resize(size, Image.Resampling.LANCZOS)
        surface = PillowSurface(base.convert("RGBA"), fonts)
    report = render(config, mode, field_values, surface, images=images, options=options)
    return surface.to_image(), report


def render_png(config: TemplateLayoutConfig, mode: str, field_values=None, **kwargs) -> bytes:
    image, _ = render_image(config, mode, field_values, **kwargs)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def render_preview(config: TemplateLayoutConfig, mode: str, field_values=None, **kwargs) -> PreviewResult:
    image, report = render_image(config, mode, field_values, **kwargs)
    buffer = BytesIO()
    image.convert("RGB").save(buffer, format="PNG")
    image_base64 = base64.b64encode(buffer.getvalue()).decode("ascii")
    return PreviewResult(image_base64=image_base64, warnings=tuple(report.warnings))


def render_pdf(
    config: TemplateLayoutConfig,
    mode: str,
    field_values: Mapping[str, Any] | None = None,
    *,
    template_pdf: str | bytes | None = None,
    background: Background = None,
    images: ImageStore | Mapping[str, Image.Image] | None = None,
    options: RenderOptions | None = None,
) -> bytes:
    """Render ``mode`` as a one-page PDF.

    With ``template_pdf`` the layers are drawn as an overlay sized to the
    template's first page and merged onto it; otherwise the page takes the
    reference canvas size, optionally painted with ``background`` first.
    """

    base_page = None
    if template_pdf is not None:
        source = BytesIO(template_pdf) if isinstance(template_pdf, bytes) else template_pdf
        base_page = PdfReader(source).pages[0]
        width = float(base_page.mediabox.width)
        height = float(base_page.mediabox.height)
    else:
        width, height = float(config.canvas.width), float(config.canvas.height)

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height))
    backdrop = _open_background(background)
    if backdrop is not None:
        c.drawImage(ImageReader(backdrop.convert("RGB")), 0, 0, width=width, height=height)
    surface = ReportLabSurface(c, width, height)
    report = render(config, mode, field_values, surface, images=images, options=options)
    c.showPage()
    c.save()
    logger.info("[render] pdf mode=%s drawn=%d warnings=%d", mode, len(report.drawn), len(report.warnings))

    if base_page is None:
        return buffer.getvalue()
    buffer.seek(0)
    overlay_page = PdfReader(buffer).pages[0]
    base_page.merge_page(overlay_page)
    writer = PdfWriter()
    writer.add_page(base_page)
    out_buf = BytesIO()
    writer.write(out_buf)
    return out_buf.getvalue()


def write_certificate(
    data: bytes,
    *,
    settings: Settings,
    template: str,
    filename: str,
    issued: date | None = None,
) -> CertificateFile:
    """Atomically store rendered bytes under ``SITE_ROOT/certificates``."""

    paths = certificate_paths(settings.certificates_root, template, filename, issued)
    write_atomic(paths.abs_path, data)
    os.chmod(paths.abs_path, 0o644)  # world-readable for the static file server
    digest = sha256_file(paths.abs_path)
    logger.info("[render] wrote %s sha256=%s", paths.rel_path, digest)
    return CertificateFile(paths.rel_path, paths.abs_path, digest)
