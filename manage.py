import json
import os

import click

from certlayout.config import Settings
from certlayout.errors import CertLayoutError
from certlayout.logging_setup import configure_logging
from certlayout.models import MODES, TemplateLayoutConfig
from certlayout.services.certificates_output import render_pdf, render_png, write_certificate
from certlayout.services.compositor import RenderOptions
from certlayout.services.image_store import ImageStore
from certlayout.services.qr import build_qr_values
from certlayout.shared.fonts import FontRegistry
from certlayout.shared.layout_config import (
    dump_layout_config,
    migrate_layout_config,
    parse_layout_config,
    validate_layout_config,
)
from certlayout.shared.storage import write_atomic


def _read_json(path: str):
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def _load_layout(path: str) -> TemplateLayoutConfig:
    try:
        return parse_layout_config(_read_json(path), strict=True)
    except (OSError, json.JSONDecodeError, CertLayoutError) as exc:
        raise click.ClickException(f"Cannot read layout {path}: {exc}")


@click.group()
@click.pass_context
def cli(ctx):
    """Certificate layout tools."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    ctx.obj = settings


@cli.command("render")
@click.argument("layout_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--values", "values_path", type=click.Path(exists=True, dir_okay=False), help="JSON map of field id to value")
@click.option("--mode", type=click.Choice(MODES), default="certificate", show_default=True)
@click.option("--format", "fmt", type=click.Choice(["png", "pdf"]), default="png", show_default=True)
@click.option("--background", type=click.Path(exists=True, dir_okay=False), help="Background image")
@click.option("--template-pdf", type=click.Path(exists=True, dir_okay=False), help="PDF to merge the layers onto")
@click.option("--width", type=int, help="Output width in pixels (PNG only)")
@click.option("--public-id", help="Public certificate id used for {{CERTIFICATE_URL}}")
@click.option("--compact", is_flag=True, help="Apply compact-template text offsets")
@click.option("--output", "output_path", type=click.Path(dir_okay=False), help="File to write")
@click.option("--store", "template_name", help="Store under SITE_ROOT/certificates/<year>/<template>/")
@click.pass_obj
def render_cmd(
    settings: Settings,
    layout_path: str,
    values_path: str | None,
    mode: str,
    fmt: str,
    background: str | None,
    template_pdf: str | None,
    width: int | None,
    public_id: str | None,
    compact: bool,
    output_path: str | None,
    template_name: str | None,
):
    """Render a layout with field values to PNG or PDF."""
    if not output_path and not template_name:
        raise click.UsageError("Pass --output or --store")
    config = _load_layout(layout_path)
    values = _read_json(values_path) if values_path else {}
    qr_values = build_qr_values(
        settings.base_url,
        public_id,
        certificate_no=values.get("certificate_no"),
        name=values.get("name"),
    )
    options = RenderOptions(compact=compact, qr_values=qr_values)
    images = ImageStore.from_settings(settings)
    try:
        images.prefetch(config, mode, values)
        if fmt == "pdf":
            data = render_pdf(
                config,
                mode,
                values,
                template_pdf=template_pdf,
                background=background,
                images=images,
                options=options,
            )
        else:
            data = render_png(
                config,
                mode,
                values,
                fonts=FontRegistry.from_settings(settings),
                background=background,
                width=width,
                images=images,
                options=options,
            )
    except CertLayoutError as exc:
        raise click.ClickException(str(exc))

    if template_name:
        base = os.path.splitext(os.path.basename(output_path or layout_path))[0]
        stored = write_certificate(data, settings=settings, template=template_name, filename=f"{base}.{fmt}")
        click.echo(f"{stored.abs_path} sha256={stored.sha256}")
    else:
        write_atomic(os.path.abspath(output_path), data)
        click.echo(output_path)


@cli.command("validate")
@click.argument("layout_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate_cmd(ctx, layout_path: str):
    """Check a layout for required fields and bad geometry."""
    result = validate_layout_config(_load_layout(layout_path))
    for field in result.missing_fields:
        click.echo(f"missing field: {field}")
    for error in result.errors:
        click.echo(f"error: {error}")
    if not result.is_valid:
        ctx.exit(1)
    click.echo("OK")


@cli.command("migrate")
@click.argument("layout_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "output_path", type=click.Path(dir_okay=False), help="Defaults to overwriting the input")
def migrate_cmd(layout_path: str, output_path: str | None):
    """Fill in percentage coordinates for legacy pixel-only layers."""
    config = migrate_layout_config(_load_layout(layout_path))
    target = os.path.abspath(output_path or layout_path)
    payload = json.dumps(dump_layout_config(config), indent=2, ensure_ascii=False)
    write_atomic(target, payload, mode="w")
    click.echo(target)


if __name__ == "__main__":
    cli()
