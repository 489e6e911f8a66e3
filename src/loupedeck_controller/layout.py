"""Page layout: declarative component descriptors loaded from YAML.

Example::

    pages:
      1:
        meta: {title: Home}
        components:
          clock: {type: clock, position: {col: 0, row: 0}}
          terminal:
            type: button
            position: {col: 1, row: 0}
            command: kitty
            options: {label: Terminal}
    buttons:
      0: {command: "page:1", label: Home, led_color: "#FFFFFF"}
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from loupedeck_controller.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Position(BaseModel):
    col: int = Field(ge=0, description="Grid column")
    row: int = Field(ge=0, description="Grid row")


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ClockOptions(_Options):
    show_seconds: bool = True
    background: str = "#1a1a3e"
    border: str = "#4466AA"
    time_color: str = "#FFFFFF"
    date_color: str = "#88AAFF"


class ButtonOptions(_Options):
    label: str = "Button"
    icon: str | None = Field(default=None, description="Short text glyph drawn above the label")
    icon_image: Path | None = Field(default=None, description="Image file drawn as a monochrome icon")
    icon_size: int = Field(default=48, gt=0)
    background: str = "#2a4a6a"
    border: str = "#4a7a9a"
    text_color: str = "#FFFFFF"
    vibration_pattern: str = "tap"


class VolumeDisplayOptions(_Options):
    background: str = "#1a1a2e"
    border: str = "#4a6a8a"
    bar_fill: str = "#4a9eff"
    timeout: float = Field(default=2.0, gt=0.0)


class MediaDisplayOptions(_Options):
    background: str = "#1a1a2e"
    border: str = "#8a4a6a"
    title_color: str = "#FFFFFF"
    artist_color: str = "#FF88AA"
    status_color: str = "#AAAAAA"
    timeout: float = Field(default=2.0, gt=0.0)


class NotificationDisplayOptions(_Options):
    background: str = "#1a1a2e"
    border: str = "#6a4a8a"
    timeout: float = Field(default=5.0, gt=0.0)


class WorkspaceButtonOptions(_Options):
    workspace: int = Field(ge=1, description="Workspace id to switch to")
    label: str | None = None
    vibration_pattern: str = "tap"


class _Descriptor(BaseModel):
    position: Position | None = Field(default=None, description="Cell; unpositioned components are never drawn")


class ClockDescriptor(_Descriptor):
    type: Literal["clock"]
    options: ClockOptions = Field(default_factory=ClockOptions)


class ButtonDescriptor(_Descriptor):
    type: Literal["button"]
    command: str = ""
    options: ButtonOptions = Field(default_factory=ButtonOptions)


class MediaPlayPauseDescriptor(_Descriptor):
    type: Literal["media_play_pause"]
    command: str = ""
    options: ButtonOptions = Field(default_factory=lambda: ButtonOptions(label="Play/Pause", background="#C62828", border="#E53935"))


class VolumeDisplayDescriptor(_Descriptor):
    type: Literal["volume_display"]
    options: VolumeDisplayOptions = Field(default_factory=VolumeDisplayOptions)


class MediaDisplayDescriptor(_Descriptor):
    type: Literal["media_display"]
    options: MediaDisplayOptions = Field(default_factory=MediaDisplayOptions)


class NotificationDisplayDescriptor(_Descriptor):
    type: Literal["notification_display"]
    options: NotificationDisplayOptions = Field(default_factory=NotificationDisplayOptions)


class WorkspaceButtonDescriptor(_Descriptor):
    type: Literal["workspace_button"]
    options: WorkspaceButtonOptions


ComponentDescriptor = Annotated[
    ClockDescriptor
    | ButtonDescriptor
    | MediaPlayPauseDescriptor
    | VolumeDisplayDescriptor
    | MediaDisplayDescriptor
    | NotificationDisplayDescriptor
    | WorkspaceButtonDescriptor,
    Field(discriminator="type"),
]


class PageMeta(BaseModel):
    title: str = ""
    description: str = ""


class PageConfig(BaseModel):
    meta: PageMeta = Field(default_factory=PageMeta)
    components: dict[str, ComponentDescriptor] = Field(default_factory=dict)


class ButtonConfig(BaseModel):
    """Action of a round physical button.

    ``command`` is empty (ignored), ``page:N`` (switch page) or a shell command.
    """

    command: str = ""
    label: str = ""
    led_color: str = "#FFFFFF"


class LayoutConfig(BaseModel):
    pages: dict[int, PageConfig] = Field(default_factory=dict)
    buttons: dict[int, ButtonConfig] = Field(default_factory=dict)

    @field_validator("pages")
    @classmethod
    def _positive_page_numbers(cls, pages: dict[int, PageConfig]) -> dict[int, PageConfig]:
        for number in pages:
            if number < 1:
                raise ValueError(f"page numbers start at 1, got {number}")
        return pages


DEFAULT_LAYOUT: dict[str, Any] = {
    "pages": {
        1: {
            "meta": {"title": "Home", "description": "Clock, launchers and media"},
            "components": {
                "clock": {"type": "clock", "position": {"col": 0, "row": 0}},
                "terminal": {
                    "type": "button",
                    "position": {"col": 1, "row": 0},
                    "command": "x-terminal-emulator",
                    "options": {"label": "Terminal", "icon": ">_"},
                },
                "files": {
                    "type": "button",
                    "position": {"col": 2, "row": 0},
                    "command": "xdg-open ~",
                    "options": {"label": "Files"},
                },
                "play_pause": {"type": "media_play_pause", "position": {"col": 0, "row": 2}},
                "volume": {"type": "volume_display", "position": {"col": 4, "row": 0}},
                "media": {"type": "media_display", "position": {"col": 4, "row": 1}},
                "notification": {"type": "notification_display", "position": {"col": 0, "row": 0}},
            },
        },
        2: {
            "meta": {"title": "Workspaces", "description": "Window manager workspaces"},
            "components": {
                f"workspace_{n}": {
                    "type": "workspace_button",
                    "position": {"col": n - 1, "row": 0},
                    "options": {"workspace": n},
                }
                for n in range(1, 6)
            },
        },
    },
    "buttons": {
        0: {"command": "page:1", "label": "Home", "led_color": "#FFFFFF"},
        1: {"command": "page:2", "label": "Workspaces", "led_color": "#FF0000"},
        2: {"command": "", "label": "", "led_color": "#00FF00"},
        3: {"command": "", "label": "", "led_color": "#0000FF"},
    },
}


def default_layout() -> LayoutConfig:
    return LayoutConfig.model_validate(DEFAULT_LAYOUT)


def parse_layout(data: Any) -> LayoutConfig:
    """Validate raw layout data.

    Raises:
        ConfigurationError: If the data does not describe a valid layout.
    """
    try:
        return LayoutConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid layout: {e}") from e


def load_layout(path: Path) -> LayoutConfig:
    """Load and validate a YAML layout file.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid.
    """
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read layout file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Layout file {path} is not valid YAML: {e}") from e
    layout = parse_layout(data)
    logger.info("Layout loaded from %s (%d pages)", path, len(layout.pages))
    return layout


ReloadCallback = Callable[[LayoutConfig], Awaitable[None]]


class LayoutWatcher:
    """Polls a layout file and hands every valid new version to a callback.

    An invalid file is logged and skipped; the previous layout stays active.
    """

    def __init__(self, path: Path, on_reload: ReloadCallback, poll_interval: float = 1.0) -> None:
        self.path = path
        self.on_reload = on_reload
        self.poll_interval = poll_interval
        self._mtime: float | None = None

    def _stat(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    async def run(self) -> None:
        self._mtime = await asyncio.to_thread(self._stat)
        logger.info("Watching layout file %s", self.path)
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.check()

    async def check(self) -> bool:
        """Reload once if the file changed since the last check.

        Returns:
            True if a new layout was applied.
        """
        mtime = await asyncio.to_thread(self._stat)
        if mtime is None or mtime == self._mtime:
            return False
        self._mtime = mtime

        logger.info("Layout file changed, reloading...")
        try:
            layout = await asyncio.to_thread(load_layout, self.path)
        except ConfigurationError as e:
            logger.error("Layout reload rejected, keeping previous layout: %s", e)
            return False
        await self.on_reload(layout)
        return True
