"""Full-screen desktop notification overlay."""

import logging
from collections.abc import Callable

from PIL import ImageDraw

from loupedeck_controller.components.base import VisualComponent, draw_centered_text, ellipsize, get_font
from loupedeck_controller.geometry import CellRect
from loupedeck_controller.models import Notification
from loupedeck_controller.overlay import NOTIFICATION_DEBOUNCE, NOTIFICATION_DISPLAY_TIMEOUT, NotificationOverlay
from loupedeck_controller.vibration import Vibration

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 30
MAX_BODY_LENGTH = 40


class NotificationDisplay(VisualComponent):
    """Covers the whole grid while a notification is shown.

    Notifications arriving meanwhile are queued and shown in arrival order.
    Touching anywhere dismisses the current one.
    """

    full_screen = True

    def __init__(
        self,
        col: int | None = 0,
        row: int | None = 0,
        label: str | None = "notification",
        timeout: float = NOTIFICATION_DISPLAY_TIMEOUT,
        debounce: float = NOTIFICATION_DEBOUNCE,
        on_change: Callable[[], None] | None = None,
        vibration: Vibration | None = None,
        background: str = "#1a1a2e",
        border: str = "#6a4a8a",
        app_name_color: str = "#AA88FF",
        title_color: str = "#FFFFFF",
        body_color: str = "#CCCCCC",
    ) -> None:
        """Initialize the notification overlay.

        Args:
            col: Anchor column; the overlay covers the whole screen.
            row: Anchor row.
            label: Component name.
            timeout: Seconds each notification stays visible.
            debounce: Delay before the next queued notification after a manual hide.
            on_change: Called when the overlay shows or hides.
            vibration: Taps when a notification is shown.
        """
        super().__init__(col, row, label)
        self.vibration = vibration
        self.overlay = NotificationOverlay(timeout, name="notification_display", on_change=on_change, debounce=debounce)
        self.background = background
        self.border = border
        self.app_name_color = app_name_color
        self.title_color = title_color
        self.body_color = body_color

    @property
    def visible(self) -> bool:
        return self.overlay.visible

    @property
    def current(self) -> Notification | None:
        return self.overlay.payload

    @property
    def queued(self) -> tuple[Notification, ...]:
        return self.overlay.queued

    async def show_notification(self, notification: Notification) -> bool:
        """Display a notification now, or queue it behind the current one.

        Returns:
            True if it is displayed immediately.
        """
        logger.debug("Notification: %s: %s", notification.app_name, notification.summary)
        shown = self.overlay.notify(notification)
        if shown and self.vibration:
            await self.vibration.vibrate_pattern("tap")
        return shown

    def hide(self) -> None:
        self.overlay.hide()

    def cleanup(self) -> None:
        self.overlay.cleanup()

    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        notification = self.current
        if not self.visible or notification is None:
            return

        x0, y0, x1, y1 = rect.box
        draw.rectangle((x0, y0, x1, y1), fill=self.background)
        draw.rectangle((x0 + 2, y0 + 2, x1 - 2, y1 - 2), outline=self.border, width=4)

        padding = max(12, int(rect.height * 0.04))
        row_height = rect.height / 3
        cx = rect.center[0]
        lines = (
            (notification.app_name or "App", max(18, int(row_height * 0.35)), self.app_name_color, 0),
            (notification.summary, max(22, int(row_height * 0.42)), self.title_color, MAX_TITLE_LENGTH),
            (notification.body.replace("\n", " ") or " ", max(18, int(row_height * 0.32)), self.body_color, MAX_BODY_LENGTH),
        )
        for index, (text, size, color, minimum) in enumerate(lines):
            # Rough character budget for the available width
            budget = max(12, minimum, int((rect.width - padding * 2) / (size * 0.6)))
            center = (cx, rect.y + row_height * (index + 0.5))
            draw_centered_text(draw, ellipsize(text, budget), center, get_font(size), color)

    async def handle_touch(self, col: int, row: int) -> bool:
        if not self.visible:
            return False
        logger.info("Notification touched, dismissing")
        self.hide()
        return True
