"""Rewrite raw note markup into a canonical one-paragraph-per-line stream.

The structural parser only sees the output of :func:`normalize`. Each
non-blank source line is isolated as its own paragraph, pipe tables are lifted
out into a side table and replaced by placeholder tokens, Obsidian-style embeds
become ordinary Markdown images and ``$$...$$`` spans are forced onto their
own paragraph.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

FRONTMATTER_DELIMITER = "---"
CODE_FENCES = ("```", "~~~")
MATH_FENCE = "$$"

TABLE_PLACEHOLDER = "[[[TABLE_{index}]]]"
TABLE_PLACEHOLDER_RE = re.compile(r"^\[\[\[TABLE_(\d+)]]]\s*$")

_EMBED_RE = re.compile(r"!\[\[([^\]]+)\]\]")
_TABLE_DIVIDER_RE = re.compile(r"^\s*\|?\s*:?-+:?\s*(\|\s*:?-+:?\s*)+\|?\s*$")


@dataclass(slots=True)
class NormalizedSource:
    lines: list[str] = field(default_factory=list)
    tables: list[list[str]] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def normalize(source: str) -> NormalizedSource:
    """Normalize *source* into a canonical line stream plus table blocks."""
    lines = source.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    out = NormalizedSource()

    in_frontmatter = False
    fence: str | None = None
    in_math = False

    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if i == 0 and stripped == FRONTMATTER_DELIMITER:
            in_frontmatter = True
            out.lines.append(line)
            i += 1
            continue

        if in_frontmatter:
            out.lines.append(line)
            if stripped == FRONTMATTER_DELIMITER:
                in_frontmatter = False
                out.lines.append("")
            i += 1
            continue

        marker = fence_marker(stripped)

        if fence is not None:
            out.lines.append(line)
            if marker == fence:
                fence = None
            i += 1
            continue

        if in_math:
            out.lines.append(line)
            if stripped.endswith(MATH_FENCE):
                in_math = False
            i += 1
            continue

        if marker is not None:
            fence = marker
            out.lines.append(line)
            i += 1
            continue

        if not stripped:
            i += 1
            continue

        # Without a closing line the $$ is ordinary text.
        if stripped == MATH_FENCE and _closes_math(lines, i + 1):
            in_math = True
            _paragraph_break(out.lines)
            out.lines.append(line)
            i += 1
            continue

        if is_table_start(lines, i):
            i = _capture_table(lines, i, out)
            continue

        for expanded in split_display_math(rewrite_embeds(line)):
            _paragraph_break(out.lines)
            if expanded.strip():
                out.lines.append(expanded)
        i += 1

    return out


def fence_marker(stripped: str) -> str | None:
    """Return the code-fence marker a trimmed line opens or closes with, if any."""
    for marker in CODE_FENCES:
        if stripped.startswith(marker):
            return marker
    return None


def _closes_math(lines: list[str], start: int) -> bool:
    return any(line.strip().endswith(MATH_FENCE) for line in lines[start:])


def is_table_start(lines: list[str], index: int) -> bool:
    """Return True when ``lines[index]`` is a table header followed by a divider."""
    line = lines[index] if index < len(lines) else ""
    following = lines[index + 1] if index + 1 < len(lines) else ""
    if "|" not in line:
        return False
    return is_table_divider(following)


def is_table_divider(line: str) -> bool:
    return bool(_TABLE_DIVIDER_RE.match(line))


def rewrite_embeds(line: str) -> str:
    """Turn ``![[target|alt]]`` embeds into ``![alt](target)`` images."""

    def _replace(match: re.Match[str]) -> str:
        target, _, alt = match.group(1).partition("|")
        encoded = target.strip().replace(" ", "%20")
        return f"![{alt.strip()}]({encoded})"

    return _EMBED_RE.sub(_replace, line)


def split_display_math(line: str) -> list[str]:
    """Split every ``$$...$$`` span of *line* onto its own blank-separated line."""
    parts: list[str] = []
    remaining = line
    while MATH_FENCE in remaining:
        start = remaining.find(MATH_FENCE)
        end = remaining.find(MATH_FENCE, start + 2)
        if end == -1:
            break

        before = remaining[:start].strip()
        math = remaining[start:end + 2].strip()
        remaining = remaining[end + 2:].strip()

        if before:
            parts.append(before)
        parts.extend(["", math, ""])

    if not parts:
        return [line]
    if remaining:
        parts.append(remaining)
    return parts


def _paragraph_break(result: list[str]) -> None:
    """Emit a blank separator unless the stream is empty or already separated."""
    if result and result[-1].strip():
        result.append("")


def _capture_table(lines: list[str], start: int, out: NormalizedSource) -> int:
    _paragraph_break(out.lines)

    block = [rewrite_embeds(lines[start]), lines[start + 1]]
    j = start + 2
    while j < len(lines):
        row = lines[j]
        if not row.strip() or "|" not in row:
            break
        block.append(rewrite_embeds(row))
        j += 1

    out.lines.append(TABLE_PLACEHOLDER.format(index=len(out.tables)))
    out.tables.append(block)
    return j
