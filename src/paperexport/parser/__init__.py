"""Parser package."""

from .base import (
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
)
from .md_parser import REFERENCE_SECTION_KEYWORDS, MarkdownParser
from .normalizer import NormalizedSource, normalize

__all__ = [
    "Block",
    "Blockquote",
    "CodeBlock",
    "Document",
    "Emphasis",
    "Heading",
    "Image",
    "Inline",
    "InlineCode",
    "InlineMath",
    "LineBreak",
    "Link",
    "ListBlock",
    "ListItem",
    "MathBlock",
    "Paragraph",
    "Strong",
    "Table",
    "Text",
    "ThematicBreak",
    "REFERENCE_SECTION_KEYWORDS",
    "MarkdownParser",
    "NormalizedSource",
    "normalize",
]
