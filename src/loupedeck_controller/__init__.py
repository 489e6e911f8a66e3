"""Loupedeck Controller - device session and display routing for Loupedeck Live S.

This package provides a daemon that owns a Loupedeck control surface, renders
pages of components onto its touch grid and routes touches, knobs and buttons
to system actions.
"""

__version__ = "0.1.0"

from loupedeck_controller.config import Settings, load_settings
from loupedeck_controller.controller import DeckController
from loupedeck_controller.device import DeviceHandle, MockDevice
from loupedeck_controller.exceptions import (
    CommandError,
    CommunicationError,
    ConfigurationError,
    DeviceError,
    DeviceNotFoundError,
    LoupedeckControllerError,
)
from loupedeck_controller.layout import LayoutConfig, load_layout
from loupedeck_controller.router import DisplayRouter
from loupedeck_controller.session import DeviceSession, SessionState

__all__ = [
    "CommandError",
    "CommunicationError",
    "ConfigurationError",
    "DeckController",
    "DeviceError",
    "DeviceHandle",
    "DeviceNotFoundError",
    "DeviceSession",
    "DisplayRouter",
    "LayoutConfig",
    "LoupedeckControllerError",
    "MockDevice",
    "SessionState",
    "Settings",
    "__version__",
    "load_layout",
    "load_settings",
]
