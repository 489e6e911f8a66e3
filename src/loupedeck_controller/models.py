"""Pydantic models for device events and overlay payloads.

Payload models are frozen: overlays swap the whole reference so a render never
observes a half-updated payload.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class TouchPoint(BaseModel):
    """A single touch on the device screen in pixel coordinates."""

    x: float = Field(description="Horizontal pixel position")
    y: float = Field(description="Vertical pixel position")
    target: str | None = Field(default=None, description="Region key reported by the driver")


class TouchStartEvent(BaseModel):
    """Payload of the ``touchstart`` device event."""

    changed_touches: list[TouchPoint] = Field(default_factory=list, description="Touches that started")


class RotateEvent(BaseModel):
    """Payload of the ``rotate`` device event."""

    id: str = Field(description="Knob identifier, e.g. 'knobTL'")
    delta: int = Field(description="Detents turned, positive is clockwise")


class ButtonEvent(BaseModel):
    """Payload of the ``down``/``up`` device events.

    Knobs report string ids, round physical buttons report integer ids.
    """

    id: int | str = Field(description="Button or knob identifier")


class VolumeState(BaseModel):
    """Snapshot of the audio sink."""

    model_config = ConfigDict(frozen=True)

    volume: int = Field(default=0, ge=0, le=100, description="Volume in percent")
    muted: bool = Field(default=False, description="Whether the sink is muted")


class MediaMetadata(BaseModel):
    """Track information of the active media player."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(default="No media", description="Track title")
    artist: str = Field(default="", description="Track artist")
    album: str = Field(default="", description="Track album")
    status: Literal["Playing", "Paused", "Stopped"] = Field(default="Stopped", description="Player status")


class Notification(BaseModel):
    """Desktop notification shown on the notification overlay.

    Received on the configured MQTT notification topic.
    """

    model_config = ConfigDict(frozen=True)

    app_name: str = Field(default="", description="Sending application")
    summary: str = Field(default="", description="Notification title")
    body: str = Field(default="", description="Notification body text")
    icon: str = Field(default="", description="Icon name or path")
    id: int = Field(default=0, description="Notification identifier")
