"""Shell-level system control: audio mixer, media player, workspaces, launching.

Every operation runs an external command as an asyncio subprocess and never
blocks the event loop.
"""

import asyncio
import json
import logging
import os
import re
import shutil
from enum import Enum
from typing import Literal, NamedTuple

from loupedeck_controller.exceptions import CommandError
from loupedeck_controller.models import MediaMetadata, VolumeState

logger = logging.getLogger(__name__)

PlayerStatus = Literal["Playing", "Paused", "Stopped"]


class CommandResult(NamedTuple):
    ok: bool
    output: str = ""


async def run_command(command: str, timeout: float = 10.0) -> CommandResult:
    """Run a shell command and capture its standard output.

    Args:
        command: Shell command line.
        timeout: Seconds before the command is killed.

    Returns:
        Success flag (exit status 0) and stripped stdout.
    """
    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.warning("Could not start command %r: %s", command, e)
        return CommandResult(False)

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        logger.warning("Command timed out after %.1fs: %s", timeout, command)
        return CommandResult(False)

    if process.returncode != 0:
        logger.debug("Command failed (%s): %s: %s", process.returncode, command, stderr.decode(errors="replace").strip())
        return CommandResult(False, stdout.decode(errors="replace").strip())
    return CommandResult(True, stdout.decode(errors="replace").strip())


class AudioBackend(Enum):
    PIPEWIRE = "pipewire"
    PULSEAUDIO = "pulseaudio"
    UNKNOWN = "unknown"


class VolumeControl:
    """Default sink volume through PipeWire (wpctl), falling back to PulseAudio (pactl)."""

    def __init__(self) -> None:
        self._backend = AudioBackend.UNKNOWN
        self._state = VolumeState(volume=100, muted=False)

    @property
    def backend(self) -> AudioBackend:
        return self._backend

    @property
    def state(self) -> VolumeState:
        """Last known volume and mute state."""
        return self._state

    async def initialize(self) -> bool:
        if shutil.which("wpctl"):
            self._backend = AudioBackend.PIPEWIRE
        elif shutil.which("pactl"):
            self._backend = AudioBackend.PULSEAUDIO
        else:
            logger.error("No audio backend found (wpctl or pactl required)")
            return False

        logger.info("Audio backend: %s", self._backend.value)
        await self.refresh()
        return True

    async def refresh(self) -> VolumeState:
        """Query the sink and update the cached state."""
        if self._backend is AudioBackend.PIPEWIRE:
            result = await run_command("wpctl get-volume @DEFAULT_AUDIO_SINK@")
            # "Volume: 0.50" or "Volume: 0.50 [MUTED]"
            match = re.search(r"Volume:\s+([\d.]+)", result.output)
            if result.ok and match:
                self._state = VolumeState(
                    volume=min(100, round(float(match.group(1)) * 100)),
                    muted="[MUTED]" in result.output,
                )
        elif self._backend is AudioBackend.PULSEAUDIO:
            volume = await run_command("pactl get-sink-volume @DEFAULT_SINK@")
            mute = await run_command("pactl get-sink-mute @DEFAULT_SINK@")
            match = re.search(r"(\d+)%", volume.output)
            if volume.ok and match:
                self._state = VolumeState(
                    volume=min(100, int(match.group(1))),
                    muted=mute.ok and "yes" in mute.output,
                )
        return self._state

    async def set_volume(self, volume: int) -> bool:
        clamped = max(0, min(100, round(volume)))
        if self._backend is AudioBackend.PIPEWIRE:
            result = await run_command(f"wpctl set-volume @DEFAULT_AUDIO_SINK@ {clamped / 100:.2f}")
        elif self._backend is AudioBackend.PULSEAUDIO:
            result = await run_command(f"pactl set-sink-volume @DEFAULT_SINK@ {clamped}%")
        else:
            return False

        if result.ok:
            self._state = VolumeState(volume=clamped, muted=self._state.muted)
            logger.debug("Volume set to %d%%", clamped)
        return result.ok

    async def adjust_volume(self, delta: int) -> int:
        """Change the volume relatively and return the new level."""
        await self.set_volume(self._state.volume + delta)
        return self._state.volume

    async def toggle_mute(self) -> bool:
        """Toggle mute and return the new mute state."""
        if self._backend is AudioBackend.PIPEWIRE:
            result = await run_command("wpctl set-mute @DEFAULT_AUDIO_SINK@ toggle")
        elif self._backend is AudioBackend.PULSEAUDIO:
            result = await run_command("pactl set-sink-mute @DEFAULT_SINK@ toggle")
        else:
            return self._state.muted

        if result.ok:
            self._state = VolumeState(volume=self._state.volume, muted=not self._state.muted)
            logger.info("Mute: %s", "ON" if self._state.muted else "OFF")
        return self._state.muted


class MediaControl:
    """Media player control through playerctl."""

    def __init__(self) -> None:
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    async def initialize(self) -> bool:
        self._available = shutil.which("playerctl") is not None
        if self._available:
            logger.info("Media control: playerctl found")
        else:
            logger.warning("Media control: playerctl not found")
        return self._available

    async def get_status(self) -> PlayerStatus:
        result = await run_command("playerctl status")
        if result.ok and result.output in ("Playing", "Paused"):
            return result.output  # type: ignore[return-value]
        return "Stopped"

    async def toggle_play_pause(self) -> PlayerStatus:
        result = await run_command("playerctl play-pause")
        if not result.ok:
            logger.warning("No media player found")
            return "Stopped"
        return await self.get_status()

    async def get_metadata(self) -> MediaMetadata:
        title, artist, album, status = await asyncio.gather(
            run_command("playerctl metadata title"),
            run_command("playerctl metadata artist"),
            run_command("playerctl metadata album"),
            self.get_status(),
        )
        if not title.ok:
            return MediaMetadata()
        return MediaMetadata(
            title=title.output or "Unknown",
            artist=artist.output if artist.ok else "",
            album=album.output if album.ok else "",
            status=status,
        )


class WorkspaceControl:
    """Hyprland workspace switching through hyprctl."""

    def __init__(self) -> None:
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    async def initialize(self) -> bool:
        result = await run_command("hyprctl version")
        self._available = result.ok and "Hyprland" in result.output
        if self._available:
            logger.info("Hyprland detected")
        else:
            logger.warning("Hyprland not detected, workspace buttons are inactive")
        return self._available

    async def get_current_workspace(self) -> int:
        """Return the active workspace id, or 0 when unknown."""
        if not self._available:
            return 0
        result = await run_command("hyprctl activeworkspace -j")
        if not result.ok:
            return 0
        try:
            return int(json.loads(result.output).get("id", 0))
        except (ValueError, TypeError, AttributeError):
            return 0

    async def switch_workspace(self, workspace_id: int) -> None:
        """Switch to a workspace.

        Raises:
            CommandError: If hyprctl rejects the dispatch.
        """
        if not self._available:
            logger.warning("Hyprland not available")
            return
        result = await run_command(f"hyprctl dispatch workspace {workspace_id}")
        if not result.ok:
            raise CommandError(f"Failed to switch to workspace {workspace_id}")
        logger.info("Switched to workspace %d", workspace_id)


class AppLauncher:
    """Launches detached applications so they outlive the controller."""

    async def launch(self, command: str) -> None:
        """Start a command in its own session.

        Raises:
            CommandError: If the shell could not start the command.
        """
        logger.info("Launching: %s", command)
        if not os.environ.get("DISPLAY") and not os.environ.get("WAYLAND_DISPLAY"):
            logger.warning("Neither DISPLAY nor WAYLAND_DISPLAY is set, GUI applications may fail to start")

        result = await run_command(f"setsid {command} >/dev/null 2>&1 &")
        if not result.ok:
            raise CommandError(f"Failed to launch {command!r}")
        logger.info("Launched: %s", command)
