"""Shared pytest fixtures for Loupedeck controller tests."""

import subprocess
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import ImageDraw

from loupedeck_controller.components.base import VisualComponent
from loupedeck_controller.config import DeviceConfig, DisplayConfig, MQTTConfig, Settings
from loupedeck_controller.device import MockDevice
from loupedeck_controller.geometry import CellRect, GridGeometry
from loupedeck_controller.models import MediaMetadata, VolumeState


class RecordingComponent(VisualComponent):
    """Component that records draws and touches."""

    def __init__(
        self,
        col: int | None = 0,
        row: int | None = 0,
        label: str | None = None,
        handles: bool = True,
        fails: bool = False,
    ) -> None:
        super().__init__(col, row, label)
        self.handles = handles
        self.fails = fails
        self.draws: list[CellRect] = []
        self.touches: list[tuple[int, int]] = []
        self.cleanups = 0

    def draw(self, draw: ImageDraw.ImageDraw, rect: CellRect) -> None:
        if self.fails:
            raise RuntimeError("draw failed")
        self.draws.append(rect)

    async def handle_touch(self, col: int, row: int) -> bool:
        if not self.occupies(col, row):
            return False
        self.touches.append((col, row))
        if self.fails:
            raise RuntimeError("touch failed")
        return self.handles

    def cleanup(self) -> None:
        self.cleanups += 1


@pytest.fixture
def mock_device() -> MockDevice:
    """Create a mock Loupedeck Live S."""
    return MockDevice()


@pytest.fixture
def discover_mock(mock_device: MockDevice) -> AsyncMock:
    """Discovery coroutine returning the mock device."""
    return AsyncMock(return_value=mock_device)


@pytest.fixture
def geometry() -> GridGeometry:
    """Geometry of a 5x3 grid of 90px keys on a 480x270 screen."""
    return GridGeometry(key_size=90, columns=5, rows=3, screen_width=480, screen_height=270)


@pytest.fixture
def device_config(tmp_path: Path) -> DeviceConfig:
    """Device settings with short timings for fast tests."""
    return DeviceConfig(
        driver="mock",
        lock_file=tmp_path / "loupedeck.pid",
        lock_wait_timeout=0.2,
        lock_poll_interval=0.05,
        ready_probe_attempts=3,
        ready_probe_timeout=0.05,
        ready_probe_interval=0.01,
        ready_grace_period=0.0,
        led_timeout=0.1,
        led_retry_backoff=0.01,
        led_max_retries=3,
        close_timeout=0.2,
        shutdown_timeout=1.0,
    )


@pytest.fixture
def test_settings(device_config: DeviceConfig) -> Settings:
    """Create test settings."""
    return Settings(
        device=device_config,
        display=DisplayConfig(render_interval=0.05, media_refresh_interval=0.05),
        mqtt=MQTTConfig(enabled=False),
    )


@pytest.fixture
def mock_volume() -> MagicMock:
    """Create a mock volume control."""
    volume = MagicMock()
    volume.state = VolumeState(volume=50, muted=False)
    volume.initialize = AsyncMock(return_value=True)
    volume.adjust_volume = AsyncMock(return_value=55)
    volume.toggle_mute = AsyncMock(return_value=True)
    return volume


@pytest.fixture
def mock_media() -> MagicMock:
    """Create a mock media control."""
    media = MagicMock()
    media.available = False
    media.initialize = AsyncMock(return_value=False)
    media.get_status = AsyncMock(return_value="Paused")
    media.toggle_play_pause = AsyncMock(return_value="Playing")
    media.get_metadata = AsyncMock(return_value=MediaMetadata(title="Song", artist="Artist", status="Playing"))
    return media


@pytest.fixture
def mock_workspaces() -> MagicMock:
    """Create a mock workspace control."""
    workspaces = MagicMock()
    workspaces.available = True
    workspaces.initialize = AsyncMock(return_value=True)
    workspaces.get_current_workspace = AsyncMock(return_value=2)
    workspaces.switch_workspace = AsyncMock()
    return workspaces


@pytest.fixture
def mock_launcher() -> MagicMock:
    """Create a mock application launcher."""
    launcher = MagicMock()
    launcher.launch = AsyncMock()
    return launcher


@pytest.fixture
def mock_vibration() -> MagicMock:
    """Create a mock vibration helper."""
    vibration = MagicMock()
    vibration.vibrate_pattern = AsyncMock()
    return vibration


HOLDER_SCRIPT = """
import os, sys, time
from filelock import FileLock
record = sys.argv[1]
lock = FileLock(record + ".lock")
lock.acquire()
with open(record, "w") as f:
    f.write(str(os.getpid()))
print("ready", flush=True)
time.sleep(30)
"""


@pytest.fixture
def lock_holder():
    """Start another process that holds the controller lock at a given PID record path."""
    processes: list[subprocess.Popen] = []

    def start(record: Path) -> subprocess.Popen:
        process = subprocess.Popen(
            [sys.executable, "-c", HOLDER_SCRIPT, str(record)],
            stdout=subprocess.PIPE,
            text=True,
        )
        processes.append(process)
        assert process.stdout.readline().strip() == "ready"
        return process

    yield start

    for process in processes:
        process.kill()
        process.wait()
        if process.stdout is not None:
            process.stdout.close()
