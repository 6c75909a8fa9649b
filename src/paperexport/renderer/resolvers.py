"""Math and image resolvers used while rendering.

Both resolvers are awaited one at a time by the renderer. A resolver may
return ``None`` or raise; :func:`resolve_math` and :func:`resolve_image` turn
either outcome into ``None`` so the caller can render a placeholder.
"""

from __future__ import annotations

import asyncio
import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote

import fitz  # PyMuPDF
from matplotlib import mathtext
from matplotlib.font_manager import FontProperties

logger = logging.getLogger(__name__)

PX_TO_PT = 0.75  # 96 dpi pixels to PDF points


@dataclass(frozen=True, slots=True)
class MathGraphic:
    graphic: bytes  # single-page vector PDF
    width_pt: float
    height_pt: float


@dataclass(frozen=True, slots=True)
class ImageData:
    data: bytes
    mime: str
    width_px: float
    height_px: float

    @property
    def is_vector(self) -> bool:
        return self.mime in ("image/svg+xml", "application/pdf")


class MathResolver(Protocol):
    async def resolve(self, latex: str, display: bool) -> MathGraphic | None:  # pragma: no cover - protocol
        ...


class ImageResolver(Protocol):
    async def resolve(self, reference: str) -> ImageData | None:  # pragma: no cover - protocol
        ...


# ---------------------------------------------------------------------------
# Call-site wrappers
# ---------------------------------------------------------------------------

async def resolve_math(resolver: MathResolver | None, latex: str, display: bool) -> MathGraphic | None:
    if resolver is None or not latex.strip():
        return None
    try:
        result = await resolver.resolve(latex, display)
    except Exception as exc:  # resolver failures degrade to a placeholder
        logger.warning("Math rendering failed for %r: %s", latex, exc)
        return None
    if result is None or result.width_pt <= 0 or result.height_pt <= 0:
        return None
    return result


async def resolve_image(resolver: ImageResolver | None, reference: str) -> ImageData | None:
    if resolver is None or not reference:
        return None
    try:
        result = await resolver.resolve(reference)
    except Exception as exc:  # resolver failures degrade to a placeholder
        logger.warning("Image resolution failed for %r: %s", reference, exc)
        return None
    if result is None or result.width_px <= 0 or result.height_px <= 0:
        return None
    return result


# ---------------------------------------------------------------------------
# matplotlib mathtext
# ---------------------------------------------------------------------------

class MathtextResolver:
    """Render TeX math with matplotlib's mathtext into a vector PDF snippet."""

    def __init__(self, font_size: float = 12.0, display_scale: float = 1.2) -> None:
        self.font_size = font_size
        self.display_scale = display_scale

    async def resolve(self, latex: str, display: bool) -> MathGraphic | None:
        size = self.font_size * (self.display_scale if display else 1.0)
        return await asyncio.to_thread(self._render, latex, size)

    @staticmethod
    def _render(latex: str, size: float) -> MathGraphic | None:
        buffer = io.BytesIO()
        mathtext.math_to_image(f"${latex}$", buffer, prop=FontProperties(size=size), format="pdf")
        data = buffer.getvalue()
        with fitz.open(stream=data, filetype="pdf") as doc:
            rect = doc[0].rect
        logger.debug("Rendered math %r (%.1f x %.1f pt)", latex, rect.width, rect.height)
        return MathGraphic(graphic=data, width_pt=float(rect.width), height_pt=float(rect.height))


# ---------------------------------------------------------------------------
# File-system images
# ---------------------------------------------------------------------------

class FileImageResolver:
    """Resolve image links against the note's folder, then by name in a vault."""

    def __init__(self, base_dir: Path, vault_root: Path | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.vault_root = Path(vault_root) if vault_root else None

    async def resolve(self, reference: str) -> ImageData | None:
        path = self._locate(reference)
        if path is None:
            logger.warning("Image not found for link: %s", reference)
            return None
        data = await asyncio.to_thread(path.read_bytes)
        mime, _ = mimetypes.guess_type(path.name)
        return load_image(data, mime or "application/octet-stream")

    def _locate(self, reference: str) -> Path | None:
        link = unquote(reference).strip()
        if not link or "://" in link:
            return None

        candidate = Path(link)
        if candidate.is_absolute():
            return candidate if candidate.is_file() else None

        local = self.base_dir / candidate
        if local.is_file():
            return local

        if self.vault_root is not None:
            exact = self.vault_root / candidate
            if exact.is_file():
                return exact
            for match in sorted(self.vault_root.rglob(candidate.name)):
                if match.is_file():
                    return match
        return None


def load_image(data: bytes, mime: str) -> ImageData | None:
    """Measure raster or vector image bytes; vector formats are converted to PDF."""
    if mime == "image/svg+xml":
        with fitz.open(stream=data, filetype="svg") as doc:
            rect = doc[0].rect
            pdf_bytes = doc.convert_to_pdf()
        return ImageData(pdf_bytes, "application/pdf", rect.width / PX_TO_PT, rect.height / PX_TO_PT)

    pixmap = fitz.Pixmap(data)
    return ImageData(data, mime, float(pixmap.width), float(pixmap.height))
