"""Document tree produced by the structural parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Inline nodes
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Text:
    value: str


@dataclass(slots=True)
class Strong:
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class Emphasis:
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class Link:
    url: str
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class InlineCode:
    value: str


@dataclass(slots=True)
class InlineMath:
    value: str
    display: bool = False


@dataclass(slots=True)
class Image:
    url: str
    alt: str = ""


@dataclass(slots=True)
class LineBreak:
    hard: bool = False


Inline = Text | Strong | Emphasis | Link | InlineCode | InlineMath | Image | LineBreak


# ---------------------------------------------------------------------------
# Block nodes
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Heading:
    depth: int
    children: list[Inline] = field(default_factory=list)
    is_reference_section: bool = False


@dataclass(slots=True)
class Paragraph:
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class ListItem:
    children: list[Block] = field(default_factory=list)


@dataclass(slots=True)
class ListBlock:
    ordered: bool = False
    start: int = 1
    items: list[ListItem] = field(default_factory=list)


@dataclass(slots=True)
class Table:
    header: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    align: list[str | None] = field(default_factory=list)


@dataclass(slots=True)
class CodeBlock:
    value: str
    info: str = ""


@dataclass(slots=True)
class Blockquote:
    children: list[Block] = field(default_factory=list)


@dataclass(slots=True)
class MathBlock:
    value: str


@dataclass(slots=True)
class ThematicBreak:
    pass


Block = Heading | Paragraph | ListBlock | Table | CodeBlock | Blockquote | MathBlock | ThematicBreak


DEFAULT_TITLE = "Untitled"


@dataclass(slots=True)
class Document:
    title: str = DEFAULT_TITLE
    blocks: list[Block] = field(default_factory=list)
    frontmatter: dict[str, Any] = field(default_factory=dict)
    citations: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    # Body nodes consumed by the reference list; rendered by the trailer instead.
    reference_heading: Heading | None = None
    reference_list: ListBlock | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def plain_text(nodes: list[Inline]) -> str:
    """Flatten inline nodes into their visible text."""
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.value)
        elif isinstance(node, (Strong, Emphasis, Link)):
            parts.append(plain_text(node.children))
        elif isinstance(node, (InlineCode, InlineMath)):
            parts.append(node.value)
        elif isinstance(node, Image):
            parts.append(node.alt)
        elif isinstance(node, LineBreak):
            parts.append(" ")
    return "".join(parts)


def block_text(blocks: list[Block]) -> str:
    """Flatten the inline content of nested blocks into one string."""
    parts: list[str] = []
    for block in blocks:
        if isinstance(block, (Paragraph, Heading)):
            parts.append(plain_text(block.children))
        elif isinstance(block, (Blockquote, ListItem)):
            parts.append(block_text(block.children))
        elif isinstance(block, ListBlock):
            parts.extend(block_text(item.children) for item in block.items)
        elif isinstance(block, (CodeBlock, MathBlock)):
            parts.append(block.value)
    return " ".join(part for part in parts if part)


def iter_blocks(blocks: list[Block]):
    """Yield every block in document order, descending into containers."""
    for block in blocks:
        yield block
        if isinstance(block, Blockquote):
            yield from iter_blocks(block.children)
        elif isinstance(block, ListBlock):
            for item in block.items:
                yield from iter_blocks(item.children)


def iter_text(nodes: list[Inline]):
    """Yield every Text node in an inline subtree in document order."""
    for node in nodes:
        if isinstance(node, Text):
            yield node
        elif isinstance(node, (Strong, Emphasis, Link)):
            yield from iter_text(node.children)
