"""Render a Document into a paginated, citation-styled PDF."""

from __future__ import annotations

import asyncio
import logging

from paperexport.config import ExportSettings
from paperexport.parser.base import Block, Document, Heading, Paragraph, Text

from .blocks import BlockRenderer
from .canvas import LETTER_HEIGHT, LETTER_WIDTH, FontSet, PdfCanvas
from .resolvers import ImageResolver, MathResolver
from .segments import Segment
from .styles import HeadingRule, StyleProfile, get_profile
from .textflow import PageCursor, TextFlow

logger = logging.getLogger(__name__)


def has_content(node: Block) -> bool:
    """Paragraphs with nothing but whitespace text are not rendered."""
    if not isinstance(node, Paragraph):
        return True
    if not node.children:
        return False
    text = "".join(child.value for child in node.children if isinstance(child, Text)).strip()
    return bool(text) or any(not isinstance(child, Text) for child in node.children)


class PDFRenderer:
    """Lay out a parsed Document page by page with one style profile."""

    def __init__(
        self,
        math_resolver: MathResolver | None = None,
        image_resolver: ImageResolver | None = None,
        *,
        page_width: float = LETTER_WIDTH,
        page_height: float = LETTER_HEIGHT,
    ) -> None:
        self.math_resolver = math_resolver
        self.image_resolver = image_resolver
        self.page_width = page_width
        self.page_height = page_height

    async def render(self, document: Document, settings: ExportSettings | None = None) -> bytes:
        settings = settings or ExportSettings()
        # Unknown styles fail here, before any page is produced.
        profile = get_profile(settings.style)

        canvas = PdfCanvas(self.page_width, self.page_height)
        try:
            blocks = self._start(canvas, profile, settings)
            await self._render_document(document, blocks)
            logger.info("Rendered %d page(s) in %s style", canvas.page_count, profile.name)
            return canvas.to_bytes()
        finally:
            canvas.close()

    def _start(self, canvas: PdfCanvas, profile: StyleProfile, settings: ExportSettings) -> BlockRenderer:
        top, right, bottom, left = settings.margins.in_points()
        cursor = PageCursor(
            page_width=self.page_width,
            page_height=self.page_height,
            top=top,
            right=right,
            bottom=bottom,
            left=left,
            y=top,
        )
        canvas.new_page()
        flow = TextFlow(canvas, cursor, profile, FontSet(settings.font), self.math_resolver)
        return BlockRenderer(flow, self.image_resolver)

    async def _render_document(self, document: Document, blocks: BlockRenderer) -> None:
        flow = blocks.flow
        cursor = flow.cursor

        if document.title.strip():
            await blocks.title(document.title)
        else:
            logger.warning("No title found in document. Skipping title formatting.")

        consumed = (document.reference_heading, document.reference_list)
        for node in document.blocks:
            if not has_content(node) or any(node is item for item in consumed):
                continue
            if cursor.y > cursor.usable_bottom:
                flow.break_page()
            if isinstance(node, Heading) and node.is_reference_section:
                flow.break_page()
            await blocks.render(node)

        await self._render_citations(document.citations, blocks)
        await self._render_references(document.references, blocks)

    async def _render_citations(self, citations: list[str], blocks: BlockRenderer) -> None:
        flow = blocks.flow
        profile = flow.profile
        for key in citations:
            flow.cursor.y += profile.paragraph_spacing
            left = flow.cursor.left
            await flow.flow([Segment(profile.format_citation(key))], left, left)

    async def _render_references(self, references: list[str], blocks: BlockRenderer) -> None:
        if not references:
            return
        flow = blocks.flow
        profile = flow.profile
        rule = profile.reference_list

        # The reference list is a reference section, so it always opens a page.
        flow.break_page()
        heading_rule = HeadingRule(align=rule.align, weight=rule.weight)
        await blocks.ruled_line(rule.heading, heading_rule)

        left = flow.cursor.left
        for entry in references:
            flow.cursor.y += profile.paragraph_spacing
            # No hanging indent in either style.
            await flow.flow([Segment(entry)], left, left)


def render_pdf(
    document: Document,
    settings: ExportSettings | None = None,
    *,
    math_resolver: MathResolver | None = None,
    image_resolver: ImageResolver | None = None,
) -> bytes:
    """Synchronous wrapper around :meth:`PDFRenderer.render`."""
    renderer = PDFRenderer(math_resolver, image_resolver)
    return asyncio.run(renderer.render(document, settings))
