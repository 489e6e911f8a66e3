"""Custom exception hierarchy for the Loupedeck controller."""


class LoupedeckControllerError(Exception):
    """Base exception for all controller errors."""


class ConfigurationError(LoupedeckControllerError):
    """Raised when settings or the layout file are invalid or missing."""


class DeviceError(LoupedeckControllerError):
    """Raised when a device hardware operation fails."""


class DeviceNotFoundError(DeviceError):
    """Raised when no device could be discovered or the driver cannot be loaded."""


class CommandError(LoupedeckControllerError):
    """Raised when an external shell command fails."""


class CommunicationError(LoupedeckControllerError):
    """Raised when MQTT communication fails."""
