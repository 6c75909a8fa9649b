"""Grid layout for tables: column geometry, row heights, borders and page breaks.

Cell content is supplied by the caller through two callbacks: ``measure``
returns the content height of a cell for a given inner width and ``paint``
draws the content once the cell rectangle is known.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .styles import TableStyle
from .textflow import TextFlow


@dataclass(frozen=True, slots=True)
class GridCell:
    row: int
    column: int
    x0: float
    y0: float
    x1: float
    y1: float
    padding: float
    header: bool = False

    @property
    def inner_left(self) -> float:
        return self.x0 + self.padding

    @property
    def inner_top(self) -> float:
        return self.y0 + self.padding

    @property
    def inner_width(self) -> float:
        return self.x1 - self.x0 - 2 * self.padding


CellMeasure = Callable[[int, int, float], float]
CellPaint = Callable[[GridCell], None]


def column_widths(total_width: float, column_count: int) -> list[float]:
    if column_count <= 0:
        return []
    return [total_width / column_count] * column_count


def draw_grid(
    flow: TextFlow,
    *,
    row_count: int,
    column_count: int,
    left: float,
    width: float,
    style: TableStyle,
    measure: CellMeasure,
    paint: CellPaint,
    repeat_header: bool = True,
) -> None:
    """Lay out *row_count* rows (row 0 is the header) starting at the cursor.

    A row that does not fit on the current page moves to the next one; the
    header row is drawn again at the top of every continuation page.
    """
    if row_count <= 0 or column_count <= 0:
        return

    widths = column_widths(width, column_count)
    pad = style.cell_padding
    heights = [
        max(measure(row, column, widths[column] - 2 * pad) for column in range(column_count)) + 2 * pad
        for row in range(row_count)
    ]

    def draw_row(row: int) -> None:
        top = flow.cursor.y
        x = left
        for column, column_width in enumerate(widths):
            cell = GridCell(
                row=row,
                column=column,
                x0=x,
                y0=top,
                x1=x + column_width,
                y1=top + heights[row],
                padding=pad,
                header=row == 0,
            )
            rect = (cell.x0, cell.y0, cell.x1, cell.y1)
            flow.canvas.draw_rect(rect, fill=style.head_fill if cell.header else None, color=style.border)
            paint(cell)
            x += column_width
        flow.cursor.y = top + heights[row]

    for row in range(row_count):
        # A row taller than the page stays on the page it starts at the top of.
        if not flow.cursor.fits(heights[row]) and flow.cursor.y > flow.cursor.top:
            flow.break_page()
            if repeat_header and row > 0:
                draw_row(0)
        draw_row(row)
