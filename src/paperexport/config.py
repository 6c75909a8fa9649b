"""Export settings: citation style, font family and page margins."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

MARGIN_MIN = 0.0
MARGIN_MAX = 3.0
MARGIN_DEFAULT = 1.0

FONT_FAMILIES = ("serif", "sans", "mono")

# Older setting values (display names and PDF base font names) mapped to families.
FONT_ALIASES = {
    "times new roman": "serif",
    "times": "serif",
    "georgia": "serif",
    "arial": "sans",
    "helvetica": "sans",
    "verdana": "sans",
    "trebuchet ms": "sans",
    "comic sans ms": "sans",
    "impact": "sans",
    "courier new": "mono",
    "courier": "mono",
    "lucida console": "mono",
    "monospace": "mono",
    "sans-serif": "sans",
}


def clamp_margin(value: Any, default: float = MARGIN_DEFAULT) -> float:
    """Parse a margin in inches and clamp it to the allowed range."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(parsed):
        return default
    return max(MARGIN_MIN, min(MARGIN_MAX, parsed))


def normalize_font(value: str | None) -> str:
    if not value:
        return "serif"
    key = value.strip().lower()
    if key in FONT_FAMILIES:
        return key
    if key in FONT_ALIASES:
        return FONT_ALIASES[key]
    logger.warning("Unknown font %r, falling back to serif", value)
    return "serif"


@dataclass(slots=True)
class Margins:
    top: float = MARGIN_DEFAULT
    right: float = MARGIN_DEFAULT
    bottom: float = MARGIN_DEFAULT
    left: float = MARGIN_DEFAULT

    def __post_init__(self) -> None:
        self.top = clamp_margin(self.top)
        self.right = clamp_margin(self.right)
        self.bottom = clamp_margin(self.bottom)
        self.left = clamp_margin(self.left)

    def in_points(self) -> tuple[float, float, float, float]:
        return (self.top * 72, self.right * 72, self.bottom * 72, self.left * 72)


@dataclass(slots=True)
class ExportSettings:
    style: str = "APA"
    font: str = "serif"
    margins: Margins = field(default_factory=Margins)

    def __post_init__(self) -> None:
        self.style = str(self.style).strip().upper()
        self.font = normalize_font(self.font)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ExportSettings:
        margins = data.get("margins") or {}
        if not isinstance(margins, dict):
            logger.warning("Ignoring margins setting that is not a mapping")
            margins = {}
        return cls(
            style=data.get("style", "APA"),
            font=data.get("font", "serif"),
            margins=Margins(
                top=margins.get("top", MARGIN_DEFAULT),
                right=margins.get("right", MARGIN_DEFAULT),
                bottom=margins.get("bottom", MARGIN_DEFAULT),
                left=margins.get("left", MARGIN_DEFAULT),
            ),
        )


def load_settings(path: Path) -> ExportSettings:
    """Read export settings from a YAML file."""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Settings file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return ExportSettings.from_mapping(data)
