"""Tests for line wrapping and the pagination-aware text flow."""

from __future__ import annotations

import asyncio

import fitz

from paperexport.renderer.canvas import FontSet, PdfCanvas
from paperexport.renderer.resolvers import MathGraphic
from paperexport.renderer.segments import Segment
from paperexport.renderer.styles import APA
from paperexport.renderer.textflow import PageCursor, PageState, TextFlow, Token, wrap_tokens


def tiny_pdf(width: float, height: float) -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=width, height=height)
    page.draw_rect(fitz.Rect(0, 0, width, height), color=(0, 0, 0), fill=(0, 0, 0))
    data = doc.tobytes()
    doc.close()
    return data


class FixedMath:
    def __init__(self, width: float = 30.0, height: float = 40.0) -> None:
        self.calls: list[tuple[str, bool]] = []
        self.graphic = MathGraphic(tiny_pdf(width, height), width, height)

    async def resolve(self, latex: str, display: bool) -> MathGraphic | None:
        self.calls.append((latex, display))
        return self.graphic


class BrokenMath:
    async def resolve(self, latex: str, display: bool) -> MathGraphic | None:
        raise RuntimeError("renderer crashed")


def make_flow(y: float = 72.0, math_resolver=None) -> TextFlow:
    canvas = PdfCanvas()
    canvas.new_page()
    cursor = PageCursor(page_width=612, page_height=792, top=72, right=72, bottom=72, left=72, y=y)
    return TextFlow(canvas, cursor, APA, FontSet("serif"), math_resolver)


# ---------------------------------------------------------------------------
# wrap_tokens
# ---------------------------------------------------------------------------

def test_oversized_token_sits_alone() -> None:
    lines = wrap_tokens([Token("huge", 500, 24), Token("next", 500, 24)], 72, 72, 300, 24)
    assert len(lines) == 2
    assert [piece.x for line in lines for piece in line.pieces] == [72, 72]


def test_first_line_indent_and_space_dropped_at_wrap() -> None:
    tokens = [
        Token("a", 100, 24),
        Token(" ", 10, 24),
        Token("b", 100, 24),
        Token(" ", 10, 24),
        Token("c", 100, 24),
    ]
    lines = wrap_tokens(tokens, 108, 72, 320, 24)

    assert [piece.token.text for piece in lines[0].pieces] == ["a", " ", "b"]
    assert lines[0].pieces[0].x == 108
    assert [(piece.x, piece.token.text) for piece in lines[1].pieces] == [(72, "c")]


def test_line_height_grows_with_tallest_token() -> None:
    lines = wrap_tokens([Token("x", 10, 24), Token("math", 20, 40)], 72, 72, 540, 24)
    assert len(lines) == 1
    assert lines[0].height == 40
    assert lines[0].width == 30


def test_empty_tokens_produce_one_empty_line() -> None:
    lines = wrap_tokens([], 72, 72, 540, 24)
    assert len(lines) == 1
    assert lines[0].pieces == []
    assert lines[0].height == 24


# ---------------------------------------------------------------------------
# Page cursor
# ---------------------------------------------------------------------------

def test_cursor_fits_boundary() -> None:
    cursor = PageCursor(page_width=612, page_height=792, top=72, right=72, bottom=72, left=72, y=696)
    assert cursor.fits(24)
    assert not cursor.fits(24.5)
    assert cursor.content_width == 468


def test_break_page_resets_cursor() -> None:
    flow = make_flow(y=700)
    flow.break_page()
    assert flow.canvas.page_count == 2
    assert flow.cursor.y == 72
    assert flow.cursor.state is PageState.ON_PAGE


def test_ensure_room_only_breaks_when_needed() -> None:
    flow = make_flow(y=600)
    flow.ensure_room(100)
    assert flow.canvas.page_count == 1
    flow.ensure_room(100)
    assert flow.canvas.page_count == 1
    flow.cursor.y = 650
    flow.ensure_room(100)
    assert flow.canvas.page_count == 2
    assert flow.cursor.y == 72


# ---------------------------------------------------------------------------
# TextFlow.flow
# ---------------------------------------------------------------------------

def test_line_past_bottom_moves_to_next_page() -> None:
    flow = make_flow(y=745)
    asyncio.run(flow.flow([Segment("hello")], 72, 72))

    assert flow.canvas.page_count == 2
    assert flow.cursor.y == 96


def test_line_that_fits_stays_on_page() -> None:
    flow = make_flow(y=600)
    asyncio.run(flow.flow([Segment("hello")], 72, 72))

    assert flow.canvas.page_count == 1
    assert flow.cursor.y == 624


def test_long_paragraph_wraps_and_advances() -> None:
    flow = make_flow()
    text = " ".join(["word"] * 200)
    asyncio.run(flow.flow([Segment(text)], 108, 72))

    # Every line is one double-spaced line tall.
    advanced = flow.cursor.y - 72
    assert advanced > 24
    assert advanced % 24 == 0
    assert flow.canvas.page_count == 1


def test_very_long_paragraph_spills_onto_pages() -> None:
    flow = make_flow()
    text = " ".join(["paragraph"] * 1500)
    asyncio.run(flow.flow([Segment(text)], 72, 72))

    assert flow.canvas.page_count >= 2
    assert 72 < flow.cursor.y <= 720


def test_runs_split_on_whitespace() -> None:
    flow = make_flow()
    tokens = asyncio.run(flow.tokenize([Segment("- "), Segment("item")]))
    assert [token.text for token in tokens] == ["-", " ", "item"]


# ---------------------------------------------------------------------------
# Math runs
# ---------------------------------------------------------------------------

def test_math_without_resolver_falls_back_to_text() -> None:
    flow = make_flow()
    tokens = asyncio.run(flow.tokenize([Segment("E=mc^2", math="inline")]))
    assert "".join(token.text for token in tokens) == "[Math: E=mc^2]"
    assert all(token.graphic is None for token in tokens)


def test_failing_resolver_falls_back_to_text() -> None:
    flow = make_flow(math_resolver=BrokenMath())
    tokens = asyncio.run(flow.tokenize([Segment("x^2", math="inline")]))
    assert "".join(token.text for token in tokens) == "[Math: x^2]"


def test_tall_math_raises_line_height() -> None:
    resolver = FixedMath(width=30, height=40)
    flow = make_flow(math_resolver=resolver)
    asyncio.run(flow.flow([Segment("a "), Segment("x", math="inline"), Segment(" b")], 72, 72))

    assert flow.cursor.y == 72 + 40
    assert resolver.calls == [("x", False)]


def test_repeated_formula_resolved_once() -> None:
    resolver = FixedMath()
    flow = make_flow(math_resolver=resolver)
    segments = [Segment("x", math="inline"), Segment(" and "), Segment("x", math="inline"), Segment("x", math="display")]
    graphics = asyncio.run(flow.resolve_math_runs(segments))

    assert resolver.calls == [("x", False), ("x", True)]
    assert set(graphics) == {("x", False), ("x", True)}


def test_trailing_overflow_whitespace_adds_no_line() -> None:
    lines = wrap_tokens([Token("word", 300, 24), Token("   ", 20, 24)], 72, 72, 380, 24)
    assert len(lines) == 1
    assert [piece.token.text for piece in lines[0].pieces] == ["word"]


def test_flow_with_trailing_spaces_advances_one_line() -> None:
    flow = make_flow(y=100)
    glyph = FontSet.width("w", "tiro", 12)
    filler = "w" * int(flow.cursor.content_width // glyph)
    asyncio.run(flow.flow([Segment(filler + "      ")], 72, 72))

    assert flow.cursor.y - 100 == 24
