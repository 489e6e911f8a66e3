"""Workspace switch buttons."""

import logging

from PIL import ImageDraw

from loupedeck_controller.components.base import VisualComponent, draw_cell_frame, draw_centered_text, get_font
from loupedeck_controller.controls import WorkspaceControl
from loupedeck_controller.exceptions import CommandError
from loupedeck_controller.geometry import CellRect
from loupedeck_controller.vibration import Vibration

logger = logging.getLogger(__name__)


class WorkspaceButton(VisualComponent):
    """Switches the window manager to a workspace; highlighted while it is active."""

    def __init__(
        self,
        col: int | None,
        row: int | None,
        workspace_id: int,
        workspaces: WorkspaceControl,
        label: str | None = None,
        vibration: Vibration | None = None,
        vibration_pattern: str = "tap",
        background: str = "#1e3a5f",
        active_background: str = "#4a9eff",
        border: str = "#3a5a7f",
        active_border: str = "#6abfff",
        text_color: str = "#FFFFFF",
    ) -> None:
        """Initialize the button.

        Args:
            workspace_id: Hyprland workspace to switch to.
            workspaces: Workspace control used for switching and the active check.
            label: Defaults to "WS <id>".
        """
        super().__init__(col, row, label or f"WS {workspace_id}")
        self.workspace_id = workspace_id
        self.workspaces = workspaces
        self.vibration = vibration
        self.vibration_pattern = vibration_pattern
        self.background = background
        self.active_background = active_background
        self.border = border
        self.active_border = active_border
        self.text_color = text_color
        self.active = False

    async def update_active_state(self) -> None:
        if not self.workspaces.available:
            return
        self.active = await self.workspaces.get_current_workspace() == self.workspace_id

    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        cx, cy = rect.center
        if self.active:
            draw_cell_frame(draw, rect, self.active_background, self.active_border, border_width=3)
        else:
            draw_cell_frame(draw, rect, self.background, self.border)
        draw_centered_text(draw, str(self.workspace_id), (cx, cy - 8), get_font(36), self.text_color)
        draw_centered_text(draw, "Workspace", (cx, cy + 24), get_font(12), self.text_color)

    async def handle_touch(self, col: int, row: int) -> bool:
        if not self.occupies(col, row):
            return False

        logger.info("Workspace button pressed: %s", self.label)
        if self.vibration:
            await self.vibration.vibrate_pattern(self.vibration_pattern)
        try:
            await self.workspaces.switch_workspace(self.workspace_id)
        except CommandError as e:
            logger.error("Failed to switch workspace: %s", e)
            if self.vibration:
                await self.vibration.vibrate_pattern("error")
            return True
        await self.update_active_state()
        return True
