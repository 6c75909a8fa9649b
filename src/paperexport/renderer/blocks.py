"""Per-node block renderers.

Each renderer computes block geometry from the style profile and hands inline
content to the shared :class:`TextFlow`, which owns line wrapping and page
breaks. Every method returns the updated page cursor.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager

from paperexport.parser.base import (
    Block,
    Blockquote,
    CodeBlock,
    Heading,
    Image,
    ListBlock,
    MathBlock,
    Paragraph,
    Table,
    ThematicBreak,
    plain_text,
)

from .canvas import weight_name
from .grid import GridCell, draw_grid
from .resolvers import PX_TO_PT, ImageResolver, MathGraphic, resolve_image, resolve_math
from .segments import Segment, extract_segments
from .styles import HeadingRule, StyleProfile
from .textflow import Line, MathKey, PageCursor, TextFlow, wrap_tokens

logger = logging.getLogger(__name__)

_CELL_MATH_RE = re.compile(r"\$([^$]+)\$")

_QUOTE_RULE_OFFSET = 5.0
_QUOTE_RULE_COLOR = (200, 200, 200)
_CODE_LINE_SPACING = 1.15
_TABLE_LINE_SPACING = 1.2


class BlockRenderer:
    """Render structural nodes through one :class:`TextFlow`."""

    def __init__(self, flow: TextFlow, image_resolver: ImageResolver | None = None) -> None:
        self.flow = flow
        self.image_resolver = image_resolver

    @property
    def cursor(self) -> PageCursor:
        return self.flow.cursor

    @property
    def profile(self) -> StyleProfile:
        return self.flow.profile

    @contextmanager
    def indented(self, offset: float) -> Iterator[PageCursor]:
        """Shift the left margin by *offset* while nested blocks render."""
        self.cursor.left += offset
        try:
            yield self.cursor
        finally:
            self.cursor.left -= offset

    async def render(self, block: Block) -> PageCursor:
        if isinstance(block, Heading):
            return await self.heading(block)
        if isinstance(block, Paragraph):
            return await self.paragraph(block)
        if isinstance(block, ListBlock):
            return await self.list_block(block)
        if isinstance(block, Table):
            return await self.table(block)
        if isinstance(block, CodeBlock):
            return self.code(block)
        if isinstance(block, Blockquote):
            return await self.blockquote(block)
        if isinstance(block, MathBlock):
            return await self.display_math(block)
        if isinstance(block, ThematicBreak):
            return self.thematic_break()

        logger.warning("Unsupported node type: %s. Skipping node.", type(block).__name__)
        return self.cursor

    # ------------------------------------------------------------------
    # Headings and titles
    # ------------------------------------------------------------------

    async def heading(self, node: Heading) -> PageCursor:
        rule = self.profile.heading_rule(node.depth)
        return await self.ruled_line(plain_text(node.children).strip(), rule)

    async def ruled_line(self, text: str, rule: HeadingRule) -> PageCursor:
        """Render one heading-like line following *rule*."""
        if rule.trailing_punctuation and not text.endswith(rule.trailing_punctuation):
            text += rule.trailing_punctuation

        bold = rule.weight in ("bold", "bolditalic")
        italic = rule.weight in ("italic", "bolditalic")
        left = self.cursor.left + rule.indent_level * self.profile.first_line_indent

        first_x = left
        if rule.align == "center":
            fontname = self.flow.fonts.fontname(weight_name(bold, italic))
            text_width = self.flow.fonts.width(text, fontname, self.profile.font_size)
            first_x = max(left, self.cursor.left + (self.cursor.content_width - text_width) / 2)

        return await self.flow.flow([Segment(text, bold=bold, italic=italic)], first_x, left)

    async def title(self, text: str) -> PageCursor:
        self.cursor.y += self.profile.font_size
        return await self.ruled_line(text, self.profile.title_rule)

    # ------------------------------------------------------------------
    # Paragraphs and lists
    # ------------------------------------------------------------------

    async def paragraph(self, node: Paragraph) -> PageCursor:
        if len(node.children) == 1 and isinstance(node.children[0], Image):
            return await self.image(node.children[0])

        left = self.cursor.left
        return await self.flow.flow(
            extract_segments(node.children),
            left + self.profile.first_line_indent,
            left,
        )

    async def list_block(self, node: ListBlock, depth: int = 1) -> PageCursor:
        spacing = self.profile.paragraph_spacing
        indent_x = self.cursor.left + self.profile.list_indent * depth

        self.cursor.y += spacing
        for index, item in enumerate(node.items):
            prefix = f"{node.start + index}. " if node.ordered else "- "
            segments: list[Segment] = []
            for child in item.children:
                if _is_inline_block(child):
                    if segments:
                        segments.append(Segment(" "))
                    segments.extend(extract_segments(child.children))
                    continue

                if segments or prefix:
                    # No hanging indent: continuation lines align with the marker.
                    await self.flow.flow(segments, indent_x, indent_x, prefix=prefix)
                    segments, prefix = [], ""
                if isinstance(child, ListBlock):
                    await self.list_block(child, depth + 1)
                else:
                    with self.indented(indent_x - self.cursor.left):
                        await self.render(child)

            if segments or prefix:
                await self.flow.flow(segments, indent_x, indent_x, prefix=prefix)
            self.cursor.y += spacing / 2
        self.cursor.y += spacing / 2
        return self.cursor

    async def blockquote(self, node: Blockquote) -> PageCursor:
        spacing = self.profile.paragraph_spacing
        quote_x = self.cursor.left + self.profile.blockquote_indent

        self.cursor.y += spacing
        start_page = self.flow.canvas.page_count
        start_y = self.cursor.y - self.profile.font_size

        segments: list[Segment] = []
        for child in node.children:
            if _is_inline_block(child):
                if segments:
                    segments.append(Segment(" "))
                segments.extend(extract_segments(child.children))
                continue

            if segments:
                await self.flow.flow(segments, quote_x, quote_x)
                segments = []
            with self.indented(self.profile.blockquote_indent):
                await self.render(child)

        if segments or not node.children:
            await self.flow.flow(segments, quote_x, quote_x)

        if self.flow.canvas.page_count != start_page:
            start_y = self.cursor.top - self.profile.font_size
        rule_x = self.cursor.left - _QUOTE_RULE_OFFSET
        end_y = self.cursor.y - self.profile.line_height + self.profile.font_size * 0.3
        self.flow.canvas.draw_line(rule_x, start_y, rule_x, max(end_y, start_y + 10), color=_QUOTE_RULE_COLOR)

        self.cursor.y += spacing
        return self.cursor

    # ------------------------------------------------------------------
    # Code, rules and math
    # ------------------------------------------------------------------

    def code(self, node: CodeBlock) -> PageCursor:
        spacing = self.profile.paragraph_spacing
        size = self.profile.font_size - self.profile.code_font_delta
        step = size * _CODE_LINE_SPACING
        fontname = self.flow.fonts.fontname(code=True)

        self.cursor.y += spacing
        for line in node.value.split("\n"):
            self.flow.ensure_room(step)
            # Long lines are not wrapped and may run into the right margin.
            self.flow.canvas.draw_text(self.cursor.left, self.cursor.y, line.expandtabs(4), fontname=fontname, fontsize=size)
            self.cursor.y += step
        self.cursor.y += spacing
        return self.cursor

    def thematic_break(self) -> PageCursor:
        spacing = self.profile.paragraph_spacing
        self.flow.ensure_room(spacing)
        rule_y = self.cursor.y - self.profile.font_size / 2
        self.flow.canvas.draw_line(self.cursor.left, rule_y, self.cursor.right_edge, rule_y, color=_QUOTE_RULE_COLOR)
        self.cursor.y += spacing
        return self.cursor

    async def display_math(self, node: MathBlock) -> PageCursor:
        spacing = self.profile.paragraph_spacing
        self.cursor.y += spacing

        graphic = await resolve_math(self.flow.math_resolver, node.value, True)
        if graphic is None:
            self.flow.ensure_room(self.profile.line_height)
            fontname = self.flow.fonts.fontname()
            self.flow.canvas.draw_text(
                self.cursor.left,
                self.cursor.y,
                f"[Display Math: {node.value}]",
                fontname=fontname,
                fontsize=self.profile.font_size,
            )
            self.cursor.y += spacing
        else:
            width, height = _fit(graphic.width_pt, graphic.height_pt, self.cursor.content_width)
            self.flow.ensure_room(height)
            x = self.cursor.left + (self.cursor.content_width - width) / 2
            self.flow.canvas.draw_graphic((x, self.cursor.y, x + width, self.cursor.y + height), graphic.graphic)
            self.cursor.y += height

        self.cursor.y += spacing
        return self.cursor

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def image(self, node: Image) -> PageCursor:
        spacing = self.profile.paragraph_spacing
        image = await resolve_image(self.image_resolver, node.url)
        if image is None:
            label = node.alt or node.url
            left = self.cursor.left
            return await self.flow.flow([Segment(f"[Image: {label}]")], left, left)

        max_height = self.cursor.usable_bottom - self.cursor.top - 2 * spacing
        width, height = _fit(
            image.width_px * PX_TO_PT,
            image.height_px * PX_TO_PT,
            self.cursor.content_width,
            max_height,
        )

        self.cursor.y += spacing
        self.flow.ensure_room(height)
        x = self.cursor.left + (self.cursor.content_width - width) / 2
        rect = (x, self.cursor.y, x + width, self.cursor.y + height)
        if image.is_vector:
            self.flow.canvas.draw_graphic(rect, image.data)
        else:
            self.flow.canvas.draw_image(rect, image.data)
        self.cursor.y += height + spacing
        return self.cursor

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    async def table(self, node: Table) -> PageCursor:
        style = self.profile.table
        spacing = self.profile.paragraph_spacing
        size = style.font_size
        line_height = size * _TABLE_LINE_SPACING
        column_count = len(node.header)
        if not column_count:
            return self.cursor

        rows = [node.header, *node.rows]
        cell_segments = [
            [_cell_segments(cell, header=row_index == 0) for cell in row]
            for row_index, row in enumerate(rows)
        ]

        # Each distinct formula is resolved once for the whole table.
        math_cache: dict[MathKey, MathGraphic | None] = {}
        for row in cell_segments:
            for segments in row:
                await self.flow.resolve_math_runs(segments, cache=math_cache)

        tokens = [
            [self.flow.build_tokens(segments, math_cache, font_size=size, line_height=line_height) for segments in row]
            for row in cell_segments
        ]
        layouts: dict[tuple[int, int], list[Line]] = {}

        def measure(row: int, column: int, inner_width: float) -> float:
            lines = wrap_tokens(tokens[row][column], 0.0, 0.0, inner_width, line_height)
            layouts[(row, column)] = lines
            return sum(line.height for line in lines)

        def paint(cell: GridCell) -> None:
            color = style.head_text if cell.header else style.body_text
            align = node.align[cell.column] if cell.column < len(node.align) else None
            top = cell.inner_top
            for line in layouts[(cell.row, cell.column)]:
                offset = cell.inner_left
                if align == "center":
                    offset += (cell.inner_width - line.width) / 2
                elif align == "right":
                    offset += cell.inner_width - line.width
                baseline = top + line.height - size * 0.3
                self.flow.draw_line(line, baseline, font_size=size, offset=offset, color=color)
                top += line.height

        self.cursor.y += spacing
        draw_grid(
            self.flow,
            row_count=len(rows),
            column_count=column_count,
            left=self.cursor.left,
            width=self.cursor.content_width,
            style=style,
            measure=measure,
            paint=paint,
        )
        self.cursor.y += spacing + self.profile.font_size
        return self.cursor


def _is_inline_block(block: Block) -> bool:
    """Paragraphs and headings inside containers are merged into one text run."""
    if isinstance(block, Paragraph):
        return not (len(block.children) == 1 and isinstance(block.children[0], Image))
    return isinstance(block, Heading)


def _cell_segments(text: str, *, header: bool = False) -> list[Segment]:
    """Split a plain cell string into text and ``$...$`` math runs."""
    segments: list[Segment] = []
    position = 0
    for match in _CELL_MATH_RE.finditer(text):
        if match.start() > position:
            segments.append(Segment(text[position:match.start()], bold=header))
        segments.append(Segment(match.group(1).strip(), math="inline"))
        position = match.end()
    if position < len(text):
        segments.append(Segment(text[position:], bold=header))
    return segments


def _fit(width: float, height: float, max_width: float, max_height: float | None = None) -> tuple[float, float]:
    """Scale (width, height) down to fit the bounds, preserving aspect ratio."""
    scale = 1.0
    if width > max_width:
        scale = max_width / width
    if max_height is not None and height * scale > max_height:
        scale = max_height / height
    return width * scale, height * scale
