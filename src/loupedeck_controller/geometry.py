"""Grid geometry of the touch screen."""

import math
from typing import NamedTuple

from PIL import ImageDraw

BACKGROUND_COLOR = "#000000"
GRID_COLOR = "#222222"


class CellRect(NamedTuple):
    """Pixel rectangle of a grid cell."""

    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def box(self) -> tuple[float, float, float, float]:
        """Inclusive (x0, y0, x1, y1) box as PIL expects it."""
        return (self.x, self.y, self.x + self.width - 1, self.y + self.height - 1)


class GridGeometry:
    """Maps cells to pixels on a screen that may be wider than the grid.

    The grid is centered horizontally: ``margin_x = (screen_width - key_size * columns) / 2``.
    """

    def __init__(self, key_size: int, columns: int, rows: int, screen_width: int, screen_height: int) -> None:
        self.key_size = key_size
        self.columns = columns
        self.rows = rows
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.margin_x = (screen_width - key_size * columns) / 2

    @classmethod
    def from_device(cls, device) -> "GridGeometry":
        """Build the geometry of a device handle's center display."""
        width, height = device.displays["center"]
        return cls(
            key_size=device.key_size or 90,
            columns=device.columns,
            rows=device.rows,
            screen_width=width,
            screen_height=height,
        )

    def cell_rect(self, col: int, row: int) -> CellRect:
        return CellRect(self.margin_x + col * self.key_size, row * self.key_size, self.key_size, self.key_size)

    def grid_rect(self) -> CellRect:
        """Rectangle covering the whole grid, used by full-screen overlays."""
        return CellRect(self.margin_x, 0, self.key_size * self.columns, self.key_size * self.rows)

    def cell_at(self, x: float, y: float) -> tuple[int, int] | None:
        """Map a touch position to a cell.

        Returns:
            (col, row), or None when the position falls outside the grid.
        """
        col = math.floor((x - self.margin_x) / self.key_size)
        row = math.floor(y / self.key_size)
        if 0 <= col < self.columns and 0 <= row < self.rows:
            return col, row
        return None

    def cell_id(self, col: int, row: int) -> int:
        return row * self.columns + col

    def clear_background(self, draw: ImageDraw.ImageDraw, color: str = BACKGROUND_COLOR) -> None:
        draw.rectangle((0, 0, self.screen_width, self.screen_height), fill=color)

    def draw_grid(self, draw: ImageDraw.ImageDraw, color: str = GRID_COLOR) -> None:
        for row in range(self.rows):
            for col in range(self.columns):
                draw.rectangle(self.cell_rect(col, row).box, outline=color, width=1)
