"""Device handle abstraction for Loupedeck control surfaces.

The wire protocol lives in an external driver. This module only defines the
handle interface the session consumes, a mock for running without hardware,
and driver discovery.
"""

import asyncio
import importlib
import inspect
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from PIL import Image, ImageDraw

from loupedeck_controller.exceptions import DeviceError, DeviceNotFoundError

logger = logging.getLogger(__name__)

DrawCallback = Callable[[ImageDraw.ImageDraw], None]
EventCallback = Callable[[Any], None]


class DeviceHandle(ABC):
    """Abstract interface for a connected control surface."""

    type: str = "unknown"
    key_size: int = 90
    columns: int = 5
    rows: int = 3

    @property
    @abstractmethod
    def displays(self) -> dict[str, tuple[int, int]]:
        """Display regions mapped to their (width, height) in pixels."""

    @property
    def buttons(self) -> list[int]:
        """Identifiers of the LED-backed physical buttons."""
        return [0, 1, 2, 3]

    @property
    def knobs(self) -> list[str]:
        """Identifiers of the rotary knobs."""
        return []

    @abstractmethod
    def on(self, event: str, callback: EventCallback) -> None:
        """Register a callback for a device event.

        Args:
            event: One of connect, disconnect, touchstart, touchmove, touchend, rotate, down, up.
            callback: Called with the event payload.
        """

    @abstractmethod
    def remove_all_listeners(self) -> None:
        """Drop every registered event callback."""

    @abstractmethod
    async def draw_screen(self, region: str, draw_fn: DrawCallback) -> None:
        """Render a display region.

        Args:
            region: Display region name (e.g. 'center').
            draw_fn: Receives a drawing surface sized to the region.
        """

    @abstractmethod
    async def set_button_color(self, button_id: int, color: str) -> None:
        """Set the LED colour of a physical button."""

    @abstractmethod
    async def vibrate(self, pattern: list[int]) -> None:
        """Play a vibration pattern (alternating on/off durations in ms)."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection."""


class MockDevice(DeviceHandle):
    """Mock Loupedeck Live S for testing without hardware.

    Stores the last image drawn per region and every LED and vibration call
    for inspection in tests.
    """

    type = "Loupedeck Live S (mock)"

    def __init__(
        self,
        key_size: int = 90,
        columns: int = 5,
        rows: int = 3,
        width: int = 480,
        height: int = 270,
        led_failures: int = 0,
    ) -> None:
        """Initialize the mock device.

        Args:
            key_size: Cell size in pixels.
            columns: Grid columns.
            rows: Grid rows.
            width: Simulated center screen width.
            height: Simulated center screen height.
            led_failures: Number of initial LED calls that fail, simulating a busy device.
        """
        self.key_size = key_size
        self.columns = columns
        self.rows = rows
        self._displays = {"center": (width, height)}
        self._listeners: dict[str, list[EventCallback]] = defaultdict(list)
        self._led_failures = led_failures
        self.led_calls: list[tuple[int, str]] = []
        self.led_colors: dict[int, str] = {}
        self.last_images: dict[str, Image.Image] = {}
        self.draw_count = 0
        self.vibrations: list[list[int]] = []
        self.closed = False

    @property
    def displays(self) -> dict[str, tuple[int, int]]:
        """Display regions mapped to their (width, height) in pixels."""
        return self._displays

    @property
    def knobs(self) -> list[str]:
        """Identifiers of the rotary knobs."""
        return ["knobTL", "knobCL"]

    @property
    def listener_count(self) -> int:
        """Number of registered callbacks across all events."""
        return sum(len(callbacks) for callbacks in self._listeners.values())

    def on(self, event: str, callback: EventCallback) -> None:
        self._listeners[event].append(callback)

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    def emit(self, event: str, data: Any = None) -> None:
        """Deliver an event to its callbacks, as the driver would."""
        for callback in list(self._listeners.get(event, [])):
            callback(data)

    async def draw_screen(self, region: str, draw_fn: DrawCallback) -> None:
        if self.closed:
            raise DeviceError("Mock device is closed")
        if region not in self._displays:
            raise DeviceError(f"Unknown display region: {region}")

        image = Image.new("RGB", self._displays[region], (0, 0, 0))
        draw_fn(ImageDraw.Draw(image))
        self.last_images[region] = image
        self.draw_count += 1
        await asyncio.sleep(0)

    async def set_button_color(self, button_id: int, color: str) -> None:
        if self.closed:
            raise DeviceError("Mock device is closed")
        self.led_calls.append((button_id, color))
        if self._led_failures > 0:
            self._led_failures -= 1
            raise DeviceError("Device busy")
        self.led_colors[button_id] = color
        await asyncio.sleep(0)

    async def vibrate(self, pattern: list[int]) -> None:
        self.vibrations.append(list(pattern))
        await asyncio.sleep(0)

    async def close(self) -> None:
        self.closed = True
        logger.debug("Mock device closed")


async def discover(driver: str | None) -> DeviceHandle:
    """Discover a device through the configured driver.

    Args:
        driver: 'mock', or an import path 'package.module:callable' whose callable
            (sync or async) returns a connected handle.

    Returns:
        Connected device handle.

    Raises:
        DeviceNotFoundError: If no driver is configured, it cannot be loaded,
            or it finds no device.
    """
    if not driver:
        raise DeviceNotFoundError("No device driver configured (set device.driver or use --mock)")

    if driver == "mock":
        logger.info("Creating mock device")
        return MockDevice()

    module_name, _, attribute = driver.partition(":")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attribute or "discover")
    except (ImportError, AttributeError) as e:
        raise DeviceNotFoundError(f"Cannot load device driver {driver!r}: {e}") from e

    logger.info("Discovering device with driver: %s", driver)
    try:
        handle = factory()
        if inspect.isawaitable(handle):
            handle = await handle
    except DeviceNotFoundError:
        raise
    except Exception as e:
        raise DeviceNotFoundError(f"Device discovery failed: {e}") from e

    if handle is None:
        raise DeviceNotFoundError("No Loupedeck device found")
    return handle
