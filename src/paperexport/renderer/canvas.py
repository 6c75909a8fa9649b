"""PyMuPDF drawing surface and base-14 font metrics."""

from __future__ import annotations

import fitz  # PyMuPDF

LETTER_WIDTH = 612.0
LETTER_HEIGHT = 792.0

# PyMuPDF base-14 font codes per family and weight.
_BASE14 = {
    "serif": {"normal": "tiro", "bold": "tibo", "italic": "tiit", "bolditalic": "tibi"},
    "sans": {"normal": "helv", "bold": "hebo", "italic": "heit", "bolditalic": "hebi"},
    "mono": {"normal": "cour", "bold": "cobo", "italic": "coit", "bolditalic": "cobi"},
}

Color = tuple[int, int, int]


def _rgb(color: Color) -> tuple[float, float, float]:
    return (color[0] / 255, color[1] / 255, color[2] / 255)


def weight_name(bold: bool, italic: bool) -> str:
    if bold and italic:
        return "bolditalic"
    if bold:
        return "bold"
    if italic:
        return "italic"
    return "normal"


class FontSet:
    """Select and measure base-14 fonts for one configured family."""

    def __init__(self, family: str = "serif") -> None:
        self.family = family if family in _BASE14 else "serif"

    def fontname(self, weight: str = "normal", *, code: bool = False) -> str:
        family = "mono" if code else self.family
        return _BASE14[family].get(weight, _BASE14[family]["normal"])

    def for_run(self, *, bold: bool = False, italic: bool = False, code: bool = False) -> str:
        if code:
            return self.fontname(code=True)
        return self.fontname(weight_name(bold, italic))

    @staticmethod
    def width(text: str, fontname: str, fontsize: float) -> float:
        return fitz.get_text_length(text, fontname=fontname, fontsize=fontsize)


class PdfCanvas:
    """Thin page-drawing layer over a PyMuPDF document.

    Coordinates are PDF points with the origin at the top-left corner and
    text positioned by its baseline.
    """

    def __init__(self, width: float = LETTER_WIDTH, height: float = LETTER_HEIGHT) -> None:
        self.width = width
        self.height = height
        self._doc = fitz.open()
        self._page: fitz.Page | None = None

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    @property
    def page(self) -> fitz.Page:
        if self._page is None:
            self.new_page()
        return self._page

    def new_page(self) -> None:
        self._page = self._doc.new_page(width=self.width, height=self.height)

    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        *,
        fontname: str = "tiro",
        fontsize: float = 12.0,
        color: Color = (0, 0, 0),
    ) -> None:
        if not text.strip():
            return
        self.page.insert_text(fitz.Point(x, y), text, fontname=fontname, fontsize=fontsize, color=_rgb(color))

    def draw_line(self, x0: float, y0: float, x1: float, y1: float, *, color: Color = (0, 0, 0), width: float = 0.5) -> None:
        self.page.draw_line(fitz.Point(x0, y0), fitz.Point(x1, y1), color=_rgb(color), width=width)

    def draw_rect(
        self,
        rect: tuple[float, float, float, float],
        *,
        fill: Color | None = None,
        color: Color | None = None,
        width: float = 0.5,
    ) -> None:
        self.page.draw_rect(
            fitz.Rect(*rect),
            color=_rgb(color) if color else None,
            fill=_rgb(fill) if fill else None,
            width=width if color else 0,
        )

    def draw_image(self, rect: tuple[float, float, float, float], data: bytes) -> None:
        self.page.insert_image(fitz.Rect(*rect), stream=data, keep_proportion=True)

    def draw_graphic(self, rect: tuple[float, float, float, float], pdf_bytes: bytes) -> None:
        """Place the first page of a vector PDF into *rect*."""
        with fitz.open(stream=pdf_bytes, filetype="pdf") as source:
            self.page.show_pdf_page(fitz.Rect(*rect), source, 0, keep_proportion=True)

    def to_bytes(self) -> bytes:
        if self._doc.page_count == 0:
            self.new_page()
        return self._doc.tobytes(garbage=3, deflate=True)

    def close(self) -> None:
        self._doc.close()
