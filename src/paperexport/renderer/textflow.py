"""Pagination-aware greedy line wrapping for mixed text and math runs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from .canvas import Color, FontSet, PdfCanvas
from .resolvers import MathGraphic, MathResolver, resolve_math
from .segments import Segment
from .styles import StyleProfile

logger = logging.getLogger(__name__)

_WHITESPACE_SPLIT_RE = re.compile(r"(\s+)")

# Fraction of the font size a math graphic extends below the text baseline.
_MATH_DESCENT = 0.25

MathKey = tuple[str, bool]


class PageState(Enum):
    ON_PAGE = "on_page"
    BREAKING = "breaking"


@dataclass(slots=True)
class PageCursor:
    page_width: float
    page_height: float
    top: float
    right: float
    bottom: float
    left: float
    y: float = 0.0
    state: PageState = PageState.ON_PAGE

    @property
    def usable_bottom(self) -> float:
        return self.page_height - self.bottom

    @property
    def right_edge(self) -> float:
        return self.page_width - self.right

    @property
    def content_width(self) -> float:
        return self.right_edge - self.left

    def fits(self, height: float) -> bool:
        return self.y + height <= self.usable_bottom

    def break_page(self, canvas: PdfCanvas) -> None:
        self.state = PageState.BREAKING
        canvas.new_page()
        self.y = self.top
        self.state = PageState.ON_PAGE


# ---------------------------------------------------------------------------
# Line breaking
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Token:
    text: str
    width: float
    height: float
    fontname: str = ""
    graphic: MathGraphic | None = None

    @property
    def is_space(self) -> bool:
        return self.graphic is None and self.text.isspace()


@dataclass(slots=True)
class Piece:
    x: float
    token: Token


@dataclass(slots=True)
class Line:
    height: float
    pieces: list[Piece] = field(default_factory=list)

    @property
    def width(self) -> float:
        if not self.pieces:
            return 0.0
        start = self.pieces[0].x
        last = self.pieces[-1]
        return last.x + last.token.width - start


def wrap_tokens(tokens: list[Token], first_x: float, next_x: float, max_x: float, base_height: float) -> list[Line]:
    """Greedily place *tokens* on lines no wider than *max_x*.

    A token that does not fit starts a new line only when the current line
    already holds something, so a token wider than the column sits alone at
    the line start. Whitespace at a wrap point is dropped. Each line is as tall
    as its tallest token (never less than *base_height*).
    """
    lines: list[Line] = []
    line = Line(height=base_height)
    x = line_start = first_x

    for token in tokens:
        if x + token.width > max_x and x > line_start:
            lines.append(line)
            line = Line(height=base_height)
            x = line_start = next_x
            if token.is_space:
                continue
        line.pieces.append(Piece(x=x, token=token))
        x += token.width
        line.height = max(line.height, token.height)

    # Whitespace that overflowed at the very end leaves nothing to draw.
    if line.pieces or not lines:
        lines.append(line)
    return lines


# ---------------------------------------------------------------------------
# Text flow
# ---------------------------------------------------------------------------

class TextFlow:
    """Render wrapped runs at the shared page cursor.

    Every page break during rendering goes through :meth:`ensure_room` or
    :meth:`break_page`, so block renderers never touch the canvas pages
    directly.
    """

    def __init__(
        self,
        canvas: PdfCanvas,
        cursor: PageCursor,
        profile: StyleProfile,
        fonts: FontSet,
        math_resolver: MathResolver | None = None,
    ) -> None:
        self.canvas = canvas
        self.cursor = cursor
        self.profile = profile
        self.fonts = fonts
        self.math_resolver = math_resolver

    # -- page control -----------------------------------------------------

    def break_page(self) -> PageCursor:
        self.cursor.break_page(self.canvas)
        logger.debug("Page break -> page %d", self.canvas.page_count)
        return self.cursor

    def ensure_room(self, height: float) -> PageCursor:
        """Break the page first if *height* more points would cross the bottom margin."""
        if not self.cursor.fits(height):
            self.break_page()
        return self.cursor

    # -- flowing ----------------------------------------------------------

    async def flow(
        self,
        segments: list[Segment],
        first_x: float,
        next_x: float,
        *,
        prefix: str = "",
        max_x: float | None = None,
        color: Color = (0, 0, 0),
    ) -> PageCursor:
        """Wrap *segments* between the given offsets and *max_x*, drawing line by line."""
        runs = list(segments)
        if prefix:
            runs.insert(0, Segment(prefix))

        tokens = await self.tokenize(runs)
        limit = self.cursor.right_edge if max_x is None else max_x
        lines = wrap_tokens(tokens, first_x, next_x, limit, self.profile.line_height)

        for index, line in enumerate(lines):
            if index:
                self.cursor.y += lines[index - 1].height
            self.ensure_room(line.height)
            self.draw_line(line, self.cursor.y, font_size=self.profile.font_size, color=color)

        self.cursor.y += lines[-1].height
        return self.cursor

    async def tokenize(
        self,
        segments: list[Segment],
        *,
        font_size: float | None = None,
        line_height: float | None = None,
        math_cache: dict[MathKey, MathGraphic | None] | None = None,
    ) -> list[Token]:
        graphics = await self.resolve_math_runs(segments, cache=math_cache)
        return self.build_tokens(segments, graphics, font_size=font_size, line_height=line_height)

    async def resolve_math_runs(
        self,
        segments: list[Segment],
        cache: dict[MathKey, MathGraphic | None] | None = None,
    ) -> dict[MathKey, MathGraphic | None]:
        """Resolve every math run once, in order; results land in *cache* when given."""
        graphics: dict[MathKey, MathGraphic | None] = {} if cache is None else cache
        for segment in segments:
            if segment.math is None:
                continue
            key = (segment.text, segment.math == "display")
            if key not in graphics:
                graphics[key] = await resolve_math(self.math_resolver, *key)
        return graphics

    def build_tokens(
        self,
        segments: list[Segment],
        graphics: dict[MathKey, MathGraphic | None],
        *,
        font_size: float | None = None,
        line_height: float | None = None,
    ) -> list[Token]:
        size = font_size or self.profile.font_size
        height = line_height or self.profile.line_height
        tokens: list[Token] = []

        for segment in segments:
            if segment.math is not None:
                graphic = graphics.get((segment.text, segment.math == "display"))
                if graphic is not None:
                    tokens.append(Token(segment.text, graphic.width_pt, graphic.height_pt, graphic=graphic))
                    continue
                fallback = Segment(f"[Math: {segment.text}]")
                tokens.extend(self._text_tokens(fallback, size, height))
                continue
            tokens.extend(self._text_tokens(segment, size, height))

        return tokens

    def _text_tokens(self, segment: Segment, size: float, height: float) -> list[Token]:
        fontname = self.fonts.for_run(bold=segment.bold, italic=segment.italic, code=segment.code)
        return [
            Token(part, self.fonts.width(part, fontname, size), height, fontname=fontname)
            for part in _WHITESPACE_SPLIT_RE.split(segment.text)
            if part
        ]

    def draw_line(
        self,
        line: Line,
        baseline: float,
        *,
        font_size: float,
        offset: float = 0.0,
        color: Color = (0, 0, 0),
    ) -> None:
        for piece in line.pieces:
            token = piece.token
            x = piece.x + offset
            if token.graphic is not None:
                bottom = baseline + font_size * _MATH_DESCENT
                rect = (x, bottom - token.height, x + token.width, bottom)
                self.canvas.draw_graphic(rect, token.graphic.graphic)
            elif not token.is_space:
                self.canvas.draw_text(x, baseline, token.text, fontname=token.fontname, fontsize=font_size, color=color)
