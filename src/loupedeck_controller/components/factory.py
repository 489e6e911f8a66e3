"""Builds components from layout descriptors."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loupedeck_controller.components.base import VisualComponent
from loupedeck_controller.components.button import Button, MediaPlayPauseButton
from loupedeck_controller.components.clock import Clock
from loupedeck_controller.components.media import MediaDisplay
from loupedeck_controller.components.notification import NotificationDisplay
from loupedeck_controller.components.volume import VolumeDisplay
from loupedeck_controller.components.workspace import WorkspaceButton
from loupedeck_controller.controls import AppLauncher, MediaControl, VolumeControl, WorkspaceControl
from loupedeck_controller.exceptions import ConfigurationError
from loupedeck_controller.layout import (
    ButtonDescriptor,
    ClockDescriptor,
    ComponentDescriptor,
    MediaDisplayDescriptor,
    MediaPlayPauseDescriptor,
    NotificationDisplayDescriptor,
    VolumeDisplayDescriptor,
    WorkspaceButtonDescriptor,
)
from loupedeck_controller.vibration import Vibration


@dataclass
class ComponentDeps:
    """Collaborators handed to the components that need them."""

    volume: VolumeControl
    media: MediaControl
    workspaces: WorkspaceControl
    launcher: AppLauncher
    vibration: Vibration | None = None
    on_change: Callable[[], None] | None = None
    on_media_change: Callable[[], Awaitable[None]] | None = None


def create_component(name: str, descriptor: ComponentDescriptor, deps: ComponentDeps) -> VisualComponent:
    """Instantiate the component a descriptor describes.

    Raises:
        ConfigurationError: If the descriptor type is not known.
    """
    col, row = (descriptor.position.col, descriptor.position.row) if descriptor.position else (None, None)

    match descriptor:
        case ClockDescriptor(options=options):
            return Clock(col, row, label=name, **options.model_dump())
        case MediaPlayPauseDescriptor(options=options, command=command):
            return MediaPlayPauseButton(
                col,
                row,
                deps.media,
                command=command or None,
                launcher=deps.launcher,
                vibration=deps.vibration,
                on_toggle=deps.on_media_change,
                **options.model_dump(),
            )
        case ButtonDescriptor(options=options, command=command):
            return Button(
                col,
                row,
                command=command or None,
                launcher=deps.launcher,
                vibration=deps.vibration,
                **options.model_dump(),
            )
        case VolumeDisplayDescriptor(options=options):
            return VolumeDisplay(
                col,
                row,
                deps.volume,
                label=name,
                on_change=deps.on_change,
                vibration=deps.vibration,
                **options.model_dump(),
            )
        case MediaDisplayDescriptor(options=options):
            return MediaDisplay(col, row, deps.media, label=name, on_change=deps.on_change, **options.model_dump())
        case NotificationDisplayDescriptor(options=options):
            return NotificationDisplay(
                col,
                row,
                label=name,
                on_change=deps.on_change,
                vibration=deps.vibration,
                **options.model_dump(),
            )
        case WorkspaceButtonDescriptor(options=options):
            return WorkspaceButton(
                col,
                row,
                options.workspace,
                deps.workspaces,
                label=options.label,
                vibration=deps.vibration,
                vibration_pattern=options.vibration_pattern,
            )
        case _:
            raise ConfigurationError(f"Unknown component type for {name!r}: {type(descriptor).__name__}")
