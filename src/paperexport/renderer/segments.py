"""Flatten inline node trees into styled text runs."""

from __future__ import annotations

from dataclasses import dataclass

from paperexport.parser.base import (
    Emphasis,
    Image,
    Inline,
    InlineCode,
    InlineMath,
    LineBreak,
    Link,
    Strong,
    Text,
)


@dataclass(frozen=True, slots=True)
class Segment:
    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False
    math: str | None = None  # "inline" or "display"


def extract_segments(nodes: list[Inline], *, bold: bool = False, italic: bool = False) -> list[Segment]:
    """Walk *nodes* and return their runs in order, inheriting bold/italic downward."""
    segments: list[Segment] = []
    for node in nodes:
        if isinstance(node, Text):
            segments.append(Segment(node.value, bold=bold, italic=italic))
        elif isinstance(node, Strong):
            segments.extend(extract_segments(node.children, bold=True, italic=italic))
        elif isinstance(node, Emphasis):
            segments.extend(extract_segments(node.children, bold=bold, italic=True))
        elif isinstance(node, Link):
            segments.extend(extract_segments(node.children, bold=bold, italic=italic))
        elif isinstance(node, InlineCode):
            segments.append(Segment(node.value, code=True))
        elif isinstance(node, InlineMath):
            segments.append(Segment(node.value, math="display" if node.display else "inline"))
        elif isinstance(node, Image):
            segments.append(Segment(f"[Image: {node.alt or node.url}]", bold=bold, italic=italic))
        elif isinstance(node, LineBreak):
            segments.append(Segment(" ", bold=bold, italic=italic))
    return segments
