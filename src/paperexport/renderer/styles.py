"""Citation style profiles.

A profile bundles every typographic rule the block renderers consult:
indentation, spacing, heading treatment per depth, title and reference-list
treatment and citation formatting. Profiles are immutable and chosen once per
render with :func:`get_profile`.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class UnknownStyleError(ValueError):
    """Raised when a style name has no registered profile."""

    def __init__(self, style: str, available: list[str]) -> None:
        self.style = style
        self.available = available
        super().__init__(f"Unsupported format style: {style}. Available formats: {', '.join(available)}")


@dataclass(frozen=True, slots=True)
class HeadingRule:
    align: str = "left"
    weight: str = "bold"
    indent_level: int = 0
    trailing_punctuation: str = ""


@dataclass(frozen=True, slots=True)
class ReferenceListRule:
    heading: str = "References"
    align: str = "left"
    weight: str = "bold"


@dataclass(frozen=True, slots=True)
class TableStyle:
    head_fill: tuple[int, int, int] = (200, 200, 200)
    head_text: tuple[int, int, int] = (40, 40, 40)
    body_text: tuple[int, int, int] = (20, 20, 20)
    border: tuple[int, int, int] = (160, 160, 160)
    cell_padding: float = 2.0
    font_size: float = 10.0


@dataclass(frozen=True, slots=True)
class StyleProfile:
    name: str
    first_line_indent: float = 36.0
    list_indent: float = 15.0
    blockquote_indent: float = 10.0
    paragraph_spacing: float = 10.0
    font_size: float = 12.0
    line_spacing: float = 2.0
    code_font_delta: float = 2.0
    heading_rules: dict[int, HeadingRule] = field(default_factory=dict)
    default_heading_rule: HeadingRule = HeadingRule()
    title_rule: HeadingRule = HeadingRule(align="center")
    reference_list: ReferenceListRule = ReferenceListRule()
    citation_template: str = "({key})"
    table: TableStyle = TableStyle()

    @property
    def line_height(self) -> float:
        return self.font_size * self.line_spacing

    def heading_rule(self, depth: int) -> HeadingRule:
        return self.heading_rules.get(depth, self.default_heading_rule)

    def format_citation(self, key: str) -> str:
        return self.citation_template.format(key=key)


# Markdown H1 is the title, so H2 maps to the style's first heading level.
APA = StyleProfile(
    name="APA",
    heading_rules={
        2: HeadingRule(align="center", weight="bold"),
        3: HeadingRule(weight="bold"),
        4: HeadingRule(weight="bolditalic"),
        5: HeadingRule(weight="bold", indent_level=1, trailing_punctuation="."),
        6: HeadingRule(weight="bolditalic", indent_level=1, trailing_punctuation="."),
    },
    default_heading_rule=HeadingRule(weight="bold"),
    title_rule=HeadingRule(align="center", weight="bold"),
    reference_list=ReferenceListRule(heading="References", align="left", weight="bold"),
    citation_template="(CITATION: {key})",
)

MLA = StyleProfile(
    name="MLA",
    blockquote_indent=72.0,
    heading_rules={
        2: HeadingRule(weight="bold"),
        3: HeadingRule(weight="italic"),
    },
    default_heading_rule=HeadingRule(weight="bolditalic"),
    title_rule=HeadingRule(align="center", weight="normal"),
    reference_list=ReferenceListRule(heading="Works Cited", align="center", weight="normal"),
    citation_template="({key})",
)

PROFILES: dict[str, StyleProfile] = {profile.name: profile for profile in (APA, MLA)}


def available_styles() -> list[str]:
    return list(PROFILES)


def get_profile(style: str) -> StyleProfile:
    """Return the profile registered for *style* (case-insensitive)."""
    profile = PROFILES.get(str(style).strip().upper())
    if profile is None:
        raise UnknownStyleError(style, available_styles())
    return profile
