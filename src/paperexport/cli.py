"""paperexport CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click

from paperexport.config import ExportSettings, Margins, load_settings
from paperexport.parser.md_parser import MarkdownParser
from paperexport.renderer.pdf_renderer import PDFRenderer
from paperexport.renderer.resolvers import FileImageResolver, MathtextResolver
from paperexport.renderer.styles import UnknownStyleError, available_styles, get_profile

_MARKDOWN_EXTENSIONS = (".md", ".markdown")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output PDF path")
@click.option(
    "--style",
    type=click.Choice(available_styles(), case_sensitive=False),
    default=None,
    help="Citation style [default: APA]",
)
@click.option(
    "--font",
    type=click.Choice(["serif", "sans", "mono"], case_sensitive=False),
    default=None,
    help="Font family [default: serif]",
)
@click.option("--margin-top", type=float, default=None, help="Top margin in inches (0-3)")
@click.option("--margin-right", type=float, default=None, help="Right margin in inches (0-3)")
@click.option("--margin-bottom", type=float, default=None, help="Bottom margin in inches (0-3)")
@click.option("--margin-left", type=float, default=None, help="Left margin in inches (0-3)")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file",
)
@click.option(
    "--vault",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Folder searched by file name for embedded images",
)
@click.option("--no-math", is_flag=True, help="Print math as text placeholders instead of rendering it")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
def main(
    input_path: Path,
    output: Path | None,
    style: str | None,
    font: str | None,
    margin_top: float | None,
    margin_right: float | None,
    margin_bottom: float | None,
    margin_left: float | None,
    config_path: Path | None,
    vault: Path | None,
    no_math: bool,
    verbose: int,
) -> None:
    """Export a Markdown note to an APA- or MLA-formatted PDF."""
    _setup_logging(verbose)

    if not input_path.name.lower().endswith(_MARKDOWN_EXTENSIONS):
        raise click.ClickException(f"Unsupported input type: {input_path.name} (expected .md or .markdown)")

    settings = _build_settings(
        config_path,
        style=style,
        font=font,
        margins=(margin_top, margin_right, margin_bottom, margin_left),
    )
    try:
        profile = get_profile(settings.style)
    except UnknownStyleError as exc:
        raise click.ClickException(str(exc)) from exc

    document = MarkdownParser().parse(input_path)

    math_resolver = None if no_math else MathtextResolver(font_size=profile.font_size)
    image_resolver = FileImageResolver(input_path.parent, vault_root=vault)
    renderer = PDFRenderer(math_resolver, image_resolver)
    pdf = asyncio.run(renderer.render(document, settings))

    output = output or input_path.with_suffix(".pdf")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(pdf)

    click.echo(f"Exported: {output}")


def _setup_logging(verbose: int) -> None:
    level = logging.DEBUG if verbose > 1 else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_settings(
    config_path: Path | None,
    *,
    style: str | None,
    font: str | None,
    margins: tuple[float | None, float | None, float | None, float | None],
) -> ExportSettings:
    """Merge the optional settings file with command-line overrides."""
    if config_path is not None:
        try:
            base = load_settings(config_path)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
    else:
        base = ExportSettings()

    current = (base.margins.top, base.margins.right, base.margins.bottom, base.margins.left)
    merged = [override if override is not None else value for override, value in zip(margins, current)]
    return ExportSettings(
        style=style or base.style,
        font=font or base.font,
        margins=Margins(*merged),
    )


if __name__ == "__main__":  # pragma: no cover
    main()
