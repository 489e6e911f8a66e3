"""Clock cell showing the current time and date."""

from collections.abc import Callable
from datetime import datetime

from PIL import ImageDraw

from loupedeck_controller.components.base import VisualComponent, draw_cell_frame, draw_centered_text, fit_font
from loupedeck_controller.geometry import CellRect


class Clock(VisualComponent):
    """Time and date in a single cell. Not touchable."""

    def __init__(
        self,
        col: int | None = None,
        row: int | None = None,
        label: str | None = "clock",
        show_seconds: bool = True,
        background: str = "#1a1a3e",
        border: str = "#4466AA",
        time_color: str = "#FFFFFF",
        date_color: str = "#88AAFF",
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Colours are hex strings; `now` is injectable for tests."""
        super().__init__(col, row, label)
        self.show_seconds = show_seconds
        self.background = background
        self.border = border
        self.time_color = time_color
        self.date_color = date_color
        self._now = now

    def format_time(self, moment: datetime) -> str:
        return moment.strftime("%H:%M:%S" if self.show_seconds else "%H:%M")

    @staticmethod
    def format_date(moment: datetime) -> str:
        return moment.strftime("%m/%d %a")

    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        moment = self._now()
        time_text = self.format_time(moment)
        date_text = self.format_date(moment)
        cx, cy = rect.center
        max_width = rect.width - 10

        draw_cell_frame(draw, rect, self.background, self.border)
        draw_centered_text(draw, time_text, (cx, cy - 8), fit_font(draw, time_text, max_width, 24, 12), self.time_color)
        draw_centered_text(draw, date_text, (cx, cy + 16), fit_font(draw, date_text, max_width, 16, 10), self.date_color)
