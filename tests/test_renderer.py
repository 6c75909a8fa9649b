"""End-to-end rendering tests: parse Markdown, render, inspect the PDF."""

from __future__ import annotations

import asyncio
from pathlib import Path

import fitz
import pytest

from paperexport.config import ExportSettings, Margins
from paperexport.parser.base import Document, Paragraph, Text
from paperexport.parser.md_parser import MarkdownParser
from paperexport.renderer import FileImageResolver, MathGraphic, MathtextResolver, UnknownStyleError, render_pdf
from paperexport.renderer.pdf_renderer import has_content
from paperexport.renderer.resolvers import resolve_math


def _render(source: str, settings: ExportSettings | None = None, **resolvers) -> bytes:
    return render_pdf(MarkdownParser().parse_text(source), settings, **resolvers)


def _pages(pdf: bytes) -> list[str]:
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        return [page.get_text() for page in doc]


def _png(width: int = 40, height: int = 20) -> bytes:
    pixmap = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, width, height), False)
    pixmap.clear_with(180)
    return pixmap.tobytes("png")


def _tiny_pdf(width: float, height: float) -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=width, height=height)
    page.draw_rect(fitz.Rect(0, 0, width, height), color=(0, 0, 0), fill=(0, 0, 0))
    data = doc.tobytes()
    doc.close()
    return data


class CountingMath:
    def __init__(self) -> None:
        self.calls: list[tuple[str, bool]] = []

    async def resolve(self, latex: str, display: bool) -> MathGraphic | None:
        self.calls.append((latex, display))
        return MathGraphic(_tiny_pdf(12, 10), 12, 10)


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------

def test_render_produces_pdf_with_title() -> None:
    pdf = _render("# My Essay\nA short paragraph.")
    assert pdf.startswith(b"%PDF")

    pages = _pages(pdf)
    assert len(pages) == 1
    assert "Essay" in pages[0]
    assert "paragraph." in pages[0]


def test_empty_document_still_has_a_page() -> None:
    pdf = render_pdf(Document(title=""))
    assert len(_pages(pdf)) == 1


def test_whitespace_paragraphs_are_skipped() -> None:
    assert not has_content(Paragraph(children=[Text("   ")]))
    assert not has_content(Paragraph())
    assert has_content(Paragraph(children=[Text("x")]))


def test_page_count_grows_with_content() -> None:
    counts = []
    for paragraphs in (5, 50, 200):
        source = "# Long\n" + "\n".join(f"Paragraph number {n} with some words." for n in range(paragraphs))
        counts.append(len(_pages(_render(source))))

    assert counts == sorted(counts)
    assert counts[-1] > 1


def test_larger_margins_need_more_pages() -> None:
    source = "# Margins\n" + "\n".join("Some sentence that is repeated to fill pages." for _ in range(60))
    narrow = _render(source, ExportSettings(margins=Margins(0.5, 0.5, 0.5, 0.5)))
    wide = _render(source, ExportSettings(margins=Margins(2.5, 2.5, 2.5, 2.5)))
    assert len(_pages(wide)) > len(_pages(narrow))


def test_font_family_selects_base_font() -> None:
    pdf = _render("# Mono\nbody", ExportSettings(font="mono"))
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        fonts = {font[3] for font in doc[0].get_fonts()}
    assert any("Courier" in name for name in fonts)


def test_code_block_text() -> None:
    pages = _pages(_render("# Code\n```\nprint(1)\n```"))
    assert "print(1)" in pages[0]


# ---------------------------------------------------------------------------
# Styles, citations and references
# ---------------------------------------------------------------------------

def test_unknown_style_is_fatal() -> None:
    document = MarkdownParser().parse_text("# T\nbody")
    with pytest.raises(UnknownStyleError, match="Unsupported format style: CHICAGO"):
        render_pdf(document, ExportSettings(style="Chicago"))


def test_reference_section_starts_new_page() -> None:
    pdf = _render("# Paper\nShort body.\n## References\n- Entry one\n- Entry two")
    pages = _pages(pdf)

    assert len(pages) == 2
    assert "Entry" not in pages[0]
    assert "References" in pages[1]
    assert "one" in pages[1] and "two" in pages[1]
    # The consumed heading is not rendered a second time.
    assert "".join(pages).count("References") == 1


def test_reference_heading_without_list_still_breaks() -> None:
    pages = _pages(_render("# Paper\nBody.\n## Bibliography\nProse after."))
    assert len(pages) == 2
    assert "Bibliography" in pages[1]


def test_apa_citations_listed_after_body() -> None:
    pages = _pages(_render("# Paper\nAs shown [@smith2020]."))
    text = "".join(pages)
    assert "(CITATION:" in text
    assert "smith2020)" in text


def test_mla_citations_and_works_cited() -> None:
    source = "# Paper\nAs shown [@smith2020].\n## Works Cited\n- Smith, J. A Book."
    pages = _pages(_render(source, ExportSettings(style="mla")))

    assert "(smith2020)" in pages[0]
    assert "CITATION" not in "".join(pages)
    assert "Works" in pages[-1] and "Cited" in pages[-1]
    assert "Book." in pages[-1]


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def test_missing_image_placeholder(tmp_path: Path) -> None:
    pages = _pages(_render("# T\n![Figure 1](missing.png)", image_resolver=FileImageResolver(tmp_path)))
    assert "[Image:" in pages[0]
    assert "Figure" in pages[0]


def test_png_image_embedded(tmp_path: Path) -> None:
    (tmp_path / "plot.png").write_bytes(_png())
    pdf = _render("# T\n![Plot](plot.png)", image_resolver=FileImageResolver(tmp_path))

    with fitz.open(stream=pdf, filetype="pdf") as doc:
        assert len(doc[0].get_images()) == 1
        assert "[Image:" not in doc[0].get_text()


def test_embed_found_in_vault(tmp_path: Path) -> None:
    notes = tmp_path / "notes"
    notes.mkdir()
    nested = tmp_path / "vault" / "attachments"
    nested.mkdir(parents=True)
    (nested / "fig one.png").write_bytes(_png(40, 20))

    resolver = FileImageResolver(notes, vault_root=tmp_path / "vault")
    image = asyncio.run(resolver.resolve("fig%20one.png"))

    assert image is not None
    assert (image.width_px, image.height_px) == (40, 20)


def test_remote_images_are_not_fetched(tmp_path: Path) -> None:
    resolver = FileImageResolver(tmp_path)
    assert asyncio.run(resolver.resolve("https://example.org/a.png")) is None


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------

def test_display_math_fallback_text() -> None:
    pages = _pages(_render("# T\n$$E=mc^2$$"))
    assert "[Display Math: E=mc^2]" in pages[0]


def test_display_math_graphic_drawn() -> None:
    resolver = CountingMath()
    pages = _pages(_render("# T\n$$E=mc^2$$", math_resolver=resolver))
    assert resolver.calls == [("E=mc^2", True)]
    assert "Display Math" not in pages[0]


def test_table_formulas_resolved_once() -> None:
    resolver = CountingMath()
    source = "# T\n| A | B |\n|---|---|\n| $x$ | $y$ |\n| $x$ | plain |"
    pages = _pages(_render(source, math_resolver=resolver))

    assert resolver.calls == [("x", False), ("y", False)]
    assert "plain" in pages[0]


def test_mathtext_resolver_renders_pdf() -> None:
    graphic = asyncio.run(MathtextResolver().resolve(r"\alpha^2", False))
    assert graphic is not None
    assert graphic.graphic.startswith(b"%PDF")
    assert graphic.width_pt > 0 and graphic.height_pt > 0


def test_invalid_latex_degrades_to_none() -> None:
    assert asyncio.run(resolve_math(MathtextResolver(), r"\frac{", False)) is None


# ---------------------------------------------------------------------------
# Layout positions
# ---------------------------------------------------------------------------

def _words(pdf: bytes) -> list[list[tuple]]:
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        return [page.get_text("words") for page in doc]


def _x_of(words: list[tuple], text: str) -> float:
    return next(word[0] for word in words if word[4] == text)


def test_list_prefixes_and_start_number() -> None:
    page = _words(_render("# T\n3. alpha\n4. beta\n\n- gamma"))[0]
    texts = [word[4] for word in page]

    assert "3." in texts and "4." in texts and "-" in texts
    # Markers sit one list indent in from the margin.
    assert abs(_x_of(page, "3.") - 87) < 1
    assert abs(_x_of(page, "-") - 87) < 1


def test_wrapped_list_item_has_no_hanging_indent() -> None:
    page = _words(_render("# T\n- " + "lorem " * 80))[0]
    body = [word for word in page if word[4] in ("-", "lorem")]
    line_starts: dict[int, float] = {}
    for word in body:
        key = round(word[3])
        line_starts[key] = min(line_starts.get(key, word[0]), word[0])

    assert len(line_starts) > 1
    assert all(abs(x - 87) < 1 for x in line_starts.values())


def test_nested_blockquote_draws_a_rule_per_level() -> None:
    pdf = _render("# T\n> > deep quote")
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        page = doc[0]
        words = page.get_text("words")
        rule_xs = {
            round(item[1].x)
            for drawing in page.get_drawings()
            for item in drawing["items"]
            if item[0] == "l" and round(item[1].x) == round(item[2].x)
        }

    assert abs(_x_of(words, "deep") - 92) < 1
    assert {67, 77} <= rule_xs


def test_list_inside_blockquote_is_rendered() -> None:
    page = _words(_render("# T\n> - quotedalpha\n> - quotedbeta"))[0]
    texts = [word[4] for word in page]

    assert "quotedalpha" in texts and "quotedbeta" in texts
    assert _x_of(page, "quotedalpha") > 97


def test_code_block_inside_list_item_is_rendered() -> None:
    page = _words(_render("# T\n- item\n  ```\n  secretcode\n  ```"))[0]

    assert "item" in [word[4] for word in page]
    assert abs(_x_of(page, "secretcode") - 87) < 1


def test_apa_deep_heading_is_indented_with_period() -> None:
    page = _words(_render("# T\n##### Method"))[0]
    assert abs(_x_of(page, "Method.") - 108) < 1


def test_mla_unlisted_depth_uses_default_rule() -> None:
    pdf = _render("# T\n#### Deep", ExportSettings(style="MLA"))
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        spans = [
            span
            for block in doc[0].get_text("dict")["blocks"]
            for line in block.get("lines", [])
            for span in line["spans"]
        ]

    fonts = {span["font"] for span in spans if span["text"].strip() == "Deep"}
    assert fonts
    assert all("BoldItalic" in font for font in fonts)


def test_image_that_overflows_moves_to_next_page(tmp_path: Path) -> None:
    (tmp_path / "big.png").write_bytes(_png(800, 800))
    source = "# T\n" + "\n".join(f"Line {n}." for n in range(15)) + "\n![Big](big.png)"
    pdf = _render(source, image_resolver=FileImageResolver(tmp_path))

    with fitz.open(stream=pdf, filetype="pdf") as doc:
        assert doc.page_count == 2
        assert doc[0].get_images() == []
        info = doc[1].get_image_info()
        assert len(info) == 1
        x0, y0, x1, y1 = info[0]["bbox"]
        assert abs(y0 - 72) < 1
        assert abs((x1 - x0) - 468) < 1


def test_table_header_repeats_on_every_page() -> None:
    rows = "\n".join(f"| r{n} | v |" for n in range(80))
    pages = _pages(_render("# T\n| Alpha | Beta |\n|---|---|\n" + rows))

    assert len(pages) >= 2
    assert all("Alpha" in page for page in pages)
    assert "r79" in pages[-1]
