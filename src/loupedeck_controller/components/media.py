"""Media overlay cell with the current track."""

import logging
from collections.abc import Callable

from PIL import ImageDraw

from loupedeck_controller.components.base import (
    VisualComponent,
    draw_cell_frame,
    draw_centered_text,
    ellipsize,
    fit_font,
    get_font,
)
from loupedeck_controller.controls import MediaControl
from loupedeck_controller.geometry import CellRect
from loupedeck_controller.models import MediaMetadata
from loupedeck_controller.overlay import MEDIA_DISPLAY_TIMEOUT, Overlay

logger = logging.getLogger(__name__)


class MediaDisplay(VisualComponent):
    """Track title, artist and player status shown briefly after media actions."""

    def __init__(
        self,
        col: int | None,
        row: int | None,
        media: MediaControl,
        label: str | None = "media",
        timeout: float = MEDIA_DISPLAY_TIMEOUT,
        on_change: Callable[[], None] | None = None,
        background: str = "#1a1a2e",
        border: str = "#8a4a6a",
        title_color: str = "#FFFFFF",
        artist_color: str = "#FF88AA",
        status_color: str = "#AAAAAA",
    ) -> None:
        """Initialize the media overlay.

        Args:
            col: Grid column.
            row: Grid row.
            media: Player queried when no metadata is passed to show_temporarily.
            label: Component name.
            timeout: Seconds the overlay stays visible.
            on_change: Called when the overlay shows or hides.
        """
        super().__init__(col, row, label)
        self.media = media
        self.overlay = Overlay(timeout, name="media_display", on_change=on_change)
        self.background = background
        self.border = border
        self.title_color = title_color
        self.artist_color = artist_color
        self.status_color = status_color

    @property
    def visible(self) -> bool:
        return self.overlay.visible

    @property
    def metadata(self) -> MediaMetadata:
        return self.overlay.payload or MediaMetadata()

    async def show_temporarily(self, metadata: MediaMetadata | None = None) -> None:
        """Show the track, fetching metadata from the player when none is given."""
        if metadata is None:
            metadata = await self.media.get_metadata()
        self.overlay.show(metadata)

    def hide(self) -> None:
        self.overlay.hide()

    def cleanup(self) -> None:
        self.overlay.cleanup()

    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        if not self.visible:
            return
        metadata = self.metadata
        cx = rect.center[0]
        draw_cell_frame(draw, rect, self.background, self.border)

        status_y = rect.y + 16
        draw_centered_text(draw, metadata.status.upper(), (cx, status_y), get_font(11), self.artist_color)

        title = ellipsize(metadata.title, 12)
        title_y = status_y + 24
        draw_centered_text(draw, title, (cx, title_y), fit_font(draw, title, rect.width - 16, 14, 9), self.title_color)
        if metadata.artist:
            draw_centered_text(draw, ellipsize(metadata.artist, 15), (cx, title_y + 18), get_font(10), self.artist_color)
        if metadata.album:
            draw_centered_text(draw, ellipsize(metadata.album, 15), (cx, title_y + 32), get_font(9), self.status_color)

    async def handle_touch(self, col: int, row: int) -> bool:
        # Hidden: let the touch fall through to whatever is below
        if not self.visible or not self.occupies(col, row):
            return False
        logger.info("Media display touched, hiding")
        self.hide()
        return True
