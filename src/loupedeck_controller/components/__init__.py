"""Visual components drawn into the touch grid."""

from loupedeck_controller.components.base import VisualComponent
from loupedeck_controller.components.button import Button, MediaPlayPauseButton
from loupedeck_controller.components.clock import Clock
from loupedeck_controller.components.factory import ComponentDeps, create_component
from loupedeck_controller.components.media import MediaDisplay
from loupedeck_controller.components.notification import NotificationDisplay
from loupedeck_controller.components.volume import VolumeDisplay
from loupedeck_controller.components.workspace import WorkspaceButton

__all__ = [
    "Button",
    "Clock",
    "ComponentDeps",
    "MediaDisplay",
    "MediaPlayPauseButton",
    "NotificationDisplay",
    "VisualComponent",
    "VolumeDisplay",
    "WorkspaceButton",
    "create_component",
]
