"""Markdown parser producing the Document tree and citation metadata."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.front_matter import front_matter_plugin

from .base import (
    DEFAULT_TITLE,
    Block,
    Blockquote,
    CodeBlock,
    Document,
    Emphasis,
    Heading,
    Image,
    Inline,
    InlineCode,
    InlineMath,
    LineBreak,
    Link,
    ListBlock,
    ListItem,
    MathBlock,
    Paragraph,
    Strong,
    Table,
    Text,
    ThematicBreak,
    block_text,
    iter_blocks,
    iter_text,
    plain_text,
)
from .normalizer import TABLE_PLACEHOLDER_RE, NormalizedSource, normalize

logger = logging.getLogger(__name__)

# Shared by heading tagging and reference-list extraction.
REFERENCE_SECTION_KEYWORDS = frozenset(
    {
        "references",
        "reference",
        "citations",
        "bibliography",
        "works cited",
        "work cited",
    }
)

_TAG_PARAGRAPH_RE = re.compile(r"^(#[a-zA-Z0-9_-]+\s*)+$")
_CITATION_RE = re.compile(r"\[@(.*?)\]")


class MarkdownParser:
    """Parse a Markdown note into the Document tree."""

    def parse(self, input_path: Path) -> Document:
        input_path = Path(input_path)
        raw = input_path.read_text(encoding="utf-8", errors="ignore")
        return self.parse_text(raw)

    def parse_text(self, source: str) -> Document:
        normalized = normalize(source)
        root = SyntaxTreeNode(_markdown_parser().parse(normalized.text))

        frontmatter: dict[str, Any] = {}
        blocks: list[Block] = []
        for node in root.children:
            if node.type == "front_matter":
                frontmatter = _parse_frontmatter(node.content)
                continue
            block = _convert_block(node)
            if block is not None:
                blocks.append(block)

        blocks = _resolve_tables(blocks, normalized)
        title, blocks = _extract_title(frontmatter, blocks)
        blocks = [block for block in blocks if not _is_tag_paragraph(block)]
        _tag_reference_headings(blocks)

        document = Document(
            title=title,
            blocks=blocks,
            frontmatter=frontmatter,
            citations=_collect_citations(blocks),
        )
        _collect_references(document)
        return document


# ---------------------------------------------------------------------------
# markdown-it setup
# ---------------------------------------------------------------------------

_MARKDOWN_PARSER: MarkdownIt | None = None


def _markdown_parser() -> MarkdownIt:
    global _MARKDOWN_PARSER
    if _MARKDOWN_PARSER is None:
        md = MarkdownIt("commonmark", {"typographer": False})
        md.use(front_matter_plugin)
        md.use(dollarmath_plugin, double_inline=True)
        _MARKDOWN_PARSER = md
    return _MARKDOWN_PARSER


# ---------------------------------------------------------------------------
# YAML frontmatter
# ---------------------------------------------------------------------------

def _parse_frontmatter(raw: str) -> dict[str, Any]:
    """Load front-matter YAML; anything unparsable counts as empty."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed frontmatter: %s", exc)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring frontmatter that is not a mapping (%s)", type(data).__name__)
        return {}
    return data


# ---------------------------------------------------------------------------
# Syntax tree conversion
# ---------------------------------------------------------------------------

def _convert_blocks(nodes: list[SyntaxTreeNode]) -> list[Block]:
    blocks: list[Block] = []
    for node in nodes:
        block = _convert_block(node)
        if block is not None:
            blocks.append(block)
    return blocks


def _convert_block(node: SyntaxTreeNode) -> Block | None:
    kind = node.type

    if kind == "heading":
        return Heading(depth=int(node.tag[1:]), children=_inline_children(node))

    if kind == "paragraph":
        return Paragraph(children=_inline_children(node))

    if kind in ("bullet_list", "ordered_list"):
        start = node.attrs.get("start", 1) if kind == "ordered_list" else 1
        items = [ListItem(children=_convert_blocks(item.children)) for item in node.children]
        return ListBlock(ordered=kind == "ordered_list", start=int(start), items=items)

    if kind == "blockquote":
        return Blockquote(children=_convert_blocks(node.children))

    if kind in ("fence", "code_block"):
        return CodeBlock(value=node.content.rstrip("\n"), info=(node.info or "").strip())

    if kind == "math_block":
        return MathBlock(value=node.content.strip())

    if kind == "hr":
        return ThematicBreak()

    logger.debug("Skipping unsupported block node: %s", kind)
    return None


def _inline_children(node: SyntaxTreeNode) -> list[Inline]:
    inlines: list[Inline] = []
    for child in node.children:
        if child.type == "inline":
            inlines.extend(_convert_inlines(child.children))
    return inlines


def _convert_inlines(nodes: list[SyntaxTreeNode]) -> list[Inline]:
    result: list[Inline] = []
    for node in nodes:
        kind = node.type
        if kind in ("text", "text_special"):
            _append_text(result, node.content)
        elif kind == "strong":
            result.append(Strong(children=_convert_inlines(node.children)))
        elif kind == "em":
            result.append(Emphasis(children=_convert_inlines(node.children)))
        elif kind == "link":
            result.append(Link(url=str(node.attrs.get("href", "")), children=_convert_inlines(node.children)))
        elif kind == "code_inline":
            result.append(InlineCode(value=node.content))
        elif kind == "math_inline":
            result.append(InlineMath(value=node.content.strip()))
        elif kind == "math_inline_double":
            result.append(InlineMath(value=node.content.strip(), display=True))
        elif kind == "image":
            alt = node.content or "".join(child.content for child in node.children)
            result.append(Image(url=str(node.attrs.get("src", "")), alt=alt))
        elif kind == "softbreak":
            result.append(LineBreak())
        elif kind == "hardbreak":
            result.append(LineBreak(hard=True))
        elif kind == "html_inline":
            _append_text(result, node.content)
        else:
            logger.debug("Skipping unsupported inline node: %s", kind)
    return result


def _append_text(result: list[Inline], value: str) -> None:
    if result and isinstance(result[-1], Text):
        result[-1].value += value
    else:
        result.append(Text(value=value))


# ---------------------------------------------------------------------------
# Table placeholders
# ---------------------------------------------------------------------------

def _resolve_tables(blocks: list[Block], normalized: NormalizedSource) -> list[Block]:
    resolved: list[Block] = []
    for block in blocks:
        if isinstance(block, Paragraph):
            match = TABLE_PLACEHOLDER_RE.match(plain_text(block.children).strip())
            if match:
                index = int(match.group(1))
                if index < len(normalized.tables):
                    resolved.append(build_table(normalized.tables[index]))
                    continue
        resolved.append(block)
    return resolved


def build_table(lines: list[str]) -> Table:
    """Build a Table from raw header, divider and body lines."""
    if not lines or not lines[0].strip():
        return Table()

    header = _split_row(lines[0])
    column_count = len(header)
    align = _column_alignment(lines[1] if len(lines) > 1 else "", column_count)
    rows = [_fit_row(_split_row(line), column_count) for line in lines[2:]]
    return Table(header=header, rows=rows, align=align)


def _split_row(row: str) -> list[str]:
    row = row.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|"):
        row = row[:-1]
    return [cell.strip() for cell in row.split("|")]


def _fit_row(cells: list[str], column_count: int) -> list[str]:
    fitted = cells[:column_count]
    fitted.extend([""] * (column_count - len(fitted)))
    return fitted


def _column_alignment(divider: str, column_count: int) -> list[str | None]:
    align: list[str | None] = []
    for cell in _fit_row(_split_row(divider), column_count):
        left = cell.startswith(":")
        right = cell.endswith(":")
        if left and right:
            align.append("center")
        elif right:
            align.append("right")
        elif left:
            align.append("left")
        else:
            align.append(None)
    return align


# ---------------------------------------------------------------------------
# Title extraction
# ---------------------------------------------------------------------------

def _extract_title(frontmatter: dict[str, Any], blocks: list[Block]) -> tuple[str, list[Block]]:
    """Return the title and the body with the title heading removed."""
    title = frontmatter.get("title")
    if title is not None and str(title).strip():
        return str(title).strip(), blocks

    for index, block in enumerate(blocks):
        if isinstance(block, Heading) and block.depth == 1:
            text = plain_text(block.children).strip()
            if text:
                return text, blocks[:index] + blocks[index + 1:]

    return DEFAULT_TITLE, blocks


def _is_tag_paragraph(block: Block) -> bool:
    if not isinstance(block, Paragraph) or not block.children:
        return False
    if not all(isinstance(child, Text) for child in block.children):
        return False
    return bool(_TAG_PARAGRAPH_RE.match(plain_text(block.children).strip()))


# ---------------------------------------------------------------------------
# Reference sections and citations
# ---------------------------------------------------------------------------

def is_reference_heading_text(text: str) -> bool:
    return text.strip().lower() in REFERENCE_SECTION_KEYWORDS


def _tag_reference_headings(blocks: list[Block]) -> None:
    for block in iter_blocks(blocks):
        if isinstance(block, Heading) and is_reference_heading_text(plain_text(block.children)):
            block.is_reference_section = True


def _collect_citations(blocks: list[Block]) -> list[str]:
    citations: list[str] = []
    for block in iter_blocks(blocks):
        sources: list[str] = []
        if isinstance(block, (Paragraph, Heading)):
            sources = [node.value for node in iter_text(block.children)]
        elif isinstance(block, Table):
            sources = block.header + [cell for row in block.rows for cell in row]
        for text in sources:
            citations.extend(key for key in _CITATION_RE.findall(text) if key)
    return citations


def _collect_references(document: Document) -> None:
    blocks = document.blocks
    heading_index = next(
        (
            index
            for index, block in enumerate(blocks)
            if isinstance(block, Heading)
            and block.depth == 2
            and is_reference_heading_text(plain_text(block.children))
        ),
        None,
    )
    if heading_index is None:
        return

    reference_list = next(
        (block for block in blocks[heading_index + 1:] if isinstance(block, ListBlock)),
        None,
    )
    if reference_list is None:
        return

    document.reference_heading = blocks[heading_index]
    document.reference_list = reference_list
    document.references = [block_text(item.children) for item in reference_list.items]
