"""Volume overlay cell."""

import logging
from collections.abc import Callable

from PIL import ImageDraw

from loupedeck_controller.components.base import VisualComponent, draw_cell_frame, draw_centered_text, fit_font, get_font
from loupedeck_controller.controls import VolumeControl
from loupedeck_controller.geometry import CellRect
from loupedeck_controller.models import VolumeState
from loupedeck_controller.overlay import VOLUME_DISPLAY_TIMEOUT, Overlay
from loupedeck_controller.vibration import Vibration

logger = logging.getLogger(__name__)


class VolumeDisplay(VisualComponent):
    """Level bar and percentage shown for a moment after the volume changes.

    Touching it while visible toggles mute and keeps it on screen.
    """

    def __init__(
        self,
        col: int | None,
        row: int | None,
        volume: VolumeControl,
        label: str | None = "volume",
        timeout: float = VOLUME_DISPLAY_TIMEOUT,
        on_change: Callable[[], None] | None = None,
        vibration: Vibration | None = None,
        background: str = "#1a1a2e",
        border: str = "#4a6a8a",
        bar_background: str = "#2a2a3e",
        bar_fill: str = "#4a9eff",
        bar_fill_muted: str = "#666666",
        text_color: str = "#FFFFFF",
        muted_text_color: str = "#888888",
    ) -> None:
        """Initialize the volume overlay.

        Args:
            col: Grid column.
            row: Grid row.
            volume: Mixer read for the level and mute state.
            label: Component name.
            timeout: Seconds the overlay stays visible.
            on_change: Called when the overlay shows or hides.
            vibration: Haptic feedback on mute toggles.
        """
        super().__init__(col, row, label)
        self.volume = volume
        self.vibration = vibration
        self.overlay = Overlay(timeout, name="volume_display", on_change=on_change)
        self.background = background
        self.border = border
        self.bar_background = bar_background
        self.bar_fill = bar_fill
        self.bar_fill_muted = bar_fill_muted
        self.text_color = text_color
        self.muted_text_color = muted_text_color

    @property
    def visible(self) -> bool:
        return self.overlay.visible

    def show_temporarily(self, state: VolumeState | None = None) -> None:
        """Show the current (or given) volume and restart the hide timer."""
        self.overlay.show(state if state is not None else self.volume.state)

    def hide(self) -> None:
        self.overlay.hide()

    def cleanup(self) -> None:
        self.overlay.cleanup()

    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        if not self.visible:
            return
        state: VolumeState = self.overlay.payload or self.volume.state
        padding = 8
        bar_height = 8
        cx = rect.center[0]
        draw_cell_frame(draw, rect, self.background, self.border)

        title_y = rect.y + 19
        draw_centered_text(draw, "VOL", (cx, title_y), get_font(14), self.text_color)

        bar_x0 = rect.x + padding
        bar_x1 = rect.x + rect.width - padding
        bar_y0 = title_y + 15
        draw.rectangle((bar_x0, bar_y0, bar_x1, bar_y0 + bar_height), fill=self.bar_background)
        if state.volume > 0:
            fill_x1 = bar_x0 + (bar_x1 - bar_x0) * state.volume / 100
            fill = self.bar_fill_muted if state.muted else self.bar_fill
            draw.rectangle((bar_x0, bar_y0, fill_x1, bar_y0 + bar_height), fill=fill)
        draw.rectangle((bar_x0, bar_y0, bar_x1, bar_y0 + bar_height), outline=self.border, width=1)

        percent = f"{state.volume}%"
        color = self.muted_text_color if state.muted else self.text_color
        percent_y = bar_y0 + bar_height + 14
        draw_centered_text(draw, percent, (cx, percent_y), fit_font(draw, percent, rect.width - padding * 2, 18, 12), color)
        if state.muted:
            draw_centered_text(draw, "MUTE", (cx, percent_y + 16), get_font(10), self.muted_text_color)

    async def handle_touch(self, col: int, row: int) -> bool:
        if not self.visible or not self.occupies(col, row):
            return False

        logger.info("Volume display touched, toggling mute")
        muted = await self.volume.toggle_mute()
        self.show_temporarily()
        if self.vibration:
            await self.vibration.vibrate_pattern("warning" if muted else "success")
        return True
