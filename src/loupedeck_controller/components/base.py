"""Base class and drawing helpers shared by all grid components."""

import functools
import logging
from abc import ABC, abstractmethod

from PIL import ImageDraw, ImageFont

from loupedeck_controller.geometry import CellRect

logger = logging.getLogger(__name__)

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


@functools.lru_cache(maxsize=32)
def get_font(size: int) -> Font:
    """Return the default font at a pixel size, cached per size."""
    return ImageFont.load_default(size=size)


def text_width(draw: ImageDraw.ImageDraw, text: str, font: Font) -> float:
    left, _, right, _ = draw.textbbox((0, 0), text, font=font)
    return right - left


def fit_font(draw: ImageDraw.ImageDraw, text: str, max_width: float, max_size: int, min_size: int) -> Font:
    """Largest font between min_size and max_size that fits text into max_width."""
    for size in range(max_size, min_size - 1, -1):
        font = get_font(size)
        if text_width(draw, text, font) <= max_width:
            return font
    return get_font(min_size)


def ellipsize(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - 3)] + "..."


def draw_centered_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    center: tuple[float, float],
    font: Font,
    fill: str,
) -> None:
    """Draw text with its bounding box centered on a point."""
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = center[0] - (right - left) / 2 - left
    y = center[1] - (bottom - top) / 2 - top
    draw.text((x, y), text, font=font, fill=fill)


def draw_cell_frame(
    draw: ImageDraw.ImageDraw,
    rect: CellRect,
    background: str,
    border: str,
    border_width: int = 2,
) -> None:
    """Fill a cell and stroke its border just inside the edge."""
    x0, y0, x1, y1 = rect.box
    draw.rectangle((x0, y0, x1, y1), fill=background)
    draw.rectangle((x0 + 1, y0 + 1, x1 - 1, y1 - 1), outline=border, width=border_width)


class VisualComponent(ABC):
    """Something drawn into a grid cell that may react to touches.

    A component with ``col`` or ``row`` set to None is unpositioned: the router
    keeps it but never indexes or draws it as a cell. Full-screen components
    cover the whole grid and are hit-tested on every cell.
    """

    full_screen = False

    def __init__(self, col: int | None = None, row: int | None = None, label: str | None = None) -> None:
        self.col = col
        self.row = row
        self.label = label

    @property
    def positioned(self) -> bool:
        return self.col is not None and self.row is not None

    def occupies(self, col: int, row: int) -> bool:
        """Whether a touch at (col, row) lands on this component."""
        if self.full_screen:
            return True
        return self.positioned and self.col == col and self.row == row

    @abstractmethod
    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        """Render into rect.

        Must not raise for missing data and must not have side effects
        beyond drawing.
        """

    async def handle_touch(self, col: int, row: int) -> bool:
        """React to a touch.

        Returns:
            True only if this component sits at (col, row) and acted on it.
        """
        return False

    def cleanup(self) -> None:
        """Release timers and other resources. Safe to call repeatedly."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(col={self.col}, row={self.row}, label={self.label!r})"
