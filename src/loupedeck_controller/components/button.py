"""Touch buttons: command launchers and the media play/pause toggle."""

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from PIL import Image, ImageDraw

from loupedeck_controller.components.base import (
    VisualComponent,
    draw_cell_frame,
    draw_centered_text,
    fit_font,
    get_font,
)
from loupedeck_controller.controls import AppLauncher, MediaControl, PlayerStatus
from loupedeck_controller.exceptions import CommandError
from loupedeck_controller.geometry import CellRect
from loupedeck_controller.vibration import Vibration

logger = logging.getLogger(__name__)

ClickHandler = Callable[[], Awaitable[None]]


def load_icon_mask(path: Path, size: int) -> Image.Image | None:
    """Load an icon file as a greyscale mask of size x size pixels.

    Transparent images use their alpha channel. Returns None when the file
    cannot be read.
    """
    try:
        with Image.open(path) as source:
            image = source.convert("RGBA")
    except (OSError, ValueError) as e:
        logger.error("Failed to load icon %s: %s", path, e)
        return None
    image.thumbnail((size, size))
    alpha = image.getchannel("A")
    if alpha.getextrema() == (255, 255):
        return image.convert("L")
    return alpha


class Button(VisualComponent):
    """Labelled cell that vibrates and runs an action when touched.

    The action is ``on_click`` when given, otherwise ``command`` is launched
    as a detached process.
    """

    def __init__(
        self,
        col: int | None,
        row: int | None,
        label: str = "Button",
        command: str | None = None,
        icon: str | None = None,
        icon_image: Path | None = None,
        icon_size: int = 48,
        background: str = "#2a4a6a",
        border: str = "#4a7a9a",
        text_color: str = "#FFFFFF",
        vibration: Vibration | None = None,
        vibration_pattern: str = "tap",
        launcher: AppLauncher | None = None,
        on_click: ClickHandler | None = None,
    ) -> None:
        """Initialize the button.

        Args:
            col: Grid column, or None for an unplaced button.
            row: Grid row, or None for an unplaced button.
            label: Text under the icon.
            command: Shell command launched on click when no on_click is set.
            icon: Short text glyph drawn when there is no icon image.
            icon_image: Image file drawn as a tinted mask.
            icon_size: Icon edge length in pixels.
            background: Fill colour.
            border: Frame colour.
            text_color: Label and icon colour.
            vibration: Haptic feedback, optional.
            vibration_pattern: Named pattern played on touch.
            launcher: Starts `command`.
            on_click: Coroutine run instead of launching a command.
        """
        super().__init__(col, row, label)
        self.command = command
        self.icon = icon
        self.icon_size = icon_size
        self.background = background
        self.border = border
        self.text_color = text_color
        self.vibration = vibration
        self.vibration_pattern = vibration_pattern
        self.launcher = launcher
        self.on_click = on_click
        self._icon_mask = load_icon_mask(icon_image, icon_size) if icon_image else None

    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        cx, cy = rect.center
        max_width = rect.width - 10
        label = self.label or ""
        draw_cell_frame(draw, rect, self.background, self.border)

        if self._icon_mask is not None:
            width, height = self._icon_mask.size
            draw.bitmap((round(cx - width / 2), round(cy - height / 2 - 8)), self._icon_mask, fill=self.text_color)
            draw_centered_text(draw, label, (cx, cy + height / 2 + 8), fit_font(draw, label, max_width, 14, 10), self.text_color)
        elif self.draw_icon(draw, rect):
            draw_centered_text(draw, label, (cx, cy + 28), fit_font(draw, label, max_width, 14, 10), self.text_color)
        else:
            draw_centered_text(draw, label, (cx, cy), fit_font(draw, label, max_width, 20, 12), self.text_color)

    def draw_icon(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> bool:
        """Draw the text icon above the label. Returns False when there is none."""
        if not self.icon:
            return False
        cx, cy = rect.center
        draw_centered_text(draw, self.icon, (cx, cy - 10), get_font(32), self.text_color)
        return True

    async def handle_touch(self, col: int, row: int) -> bool:
        if not self.occupies(col, row):
            return False

        logger.info("Button pressed: %s", self.label)
        if self.vibration:
            await self.vibration.vibrate_pattern(self.vibration_pattern)
        await self.click()
        return True

    async def click(self) -> None:
        try:
            if self.on_click is not None:
                await self.on_click()
            elif self.command and self.launcher is not None:
                await self.launcher.launch(self.command)
        except CommandError as e:
            logger.error("Button %s failed: %s", self.label, e)
            if self.vibration:
                await self.vibration.vibrate_pattern("error")


class MediaPlayPauseButton(Button):
    """Play/pause toggle whose glyph follows the player status."""

    def __init__(
        self,
        col: int | None,
        row: int | None,
        media: MediaControl,
        label: str = "Play/Pause",
        background: str = "#C62828",
        border: str = "#E53935",
        on_toggle: ClickHandler | None = None,
        **kwargs,
    ) -> None:
        """Initialize the toggle.

        Args:
            media: Player to toggle and query.
            on_toggle: Coroutine run after every playback change, e.g. to show the media overlay.
            **kwargs: Passed on to `Button`.
        """
        super().__init__(col, row, label=label, background=background, border=border, **kwargs)
        self.media = media
        self.on_toggle = on_toggle
        self.status: PlayerStatus = "Stopped"

    async def refresh(self) -> PlayerStatus:
        """Re-read the player status; the glyph changes on the next render."""
        self.status = await self.media.get_status()
        return self.status

    def draw_icon(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> bool:
        cx, cy = rect.center
        top, bottom = cy - 26, cy + 6
        if self.status == "Playing":
            # Pause bars
            draw.rectangle((cx - 13, top, cx - 4, bottom), fill=self.text_color)
            draw.rectangle((cx + 4, top, cx + 13, bottom), fill=self.text_color)
        else:
            draw.polygon([(cx - 12, top), (cx - 12, bottom), (cx + 16, (top + bottom) / 2)], fill=self.text_color)
        return True

    async def click(self) -> None:
        if self.on_click is not None or self.command:
            await super().click()
            await self.refresh()
        else:
            self.status = await self.media.toggle_play_pause()
        if self.on_toggle is not None:
            await self.on_toggle()
