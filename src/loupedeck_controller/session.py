"""Device session: owns the hardware handle from discovery to shutdown."""

import asyncio
import contextlib
import functools
import inspect
import logging
import signal
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from loupedeck_controller.config import DeviceConfig
from loupedeck_controller.device import DeviceHandle, DrawCallback, EventCallback, discover
from loupedeck_controller.exceptions import DeviceError
from loupedeck_controller.geometry import GridGeometry
from loupedeck_controller.lock import ProcessLock
from loupedeck_controller.vibration import Vibration

logger = logging.getLogger(__name__)

DiscoverFunc = Callable[[str | None], Awaitable[DeviceHandle]]
CleanupCallback = Callable[[], Awaitable[None] | None]

RAW_EVENTS = ("down", "up", "touchstart", "touchmove", "touchend", "rotate")
LED_OFF = "#000000"
PROBE_BUTTON = 0


class SessionState(Enum):
    """Lifecycle of the device handle.

    DISCONNECTED -> CONNECTING -> READY -> DISCONNECTING -> DISCONNECTED.
    A failed or interrupted connect falls straight back to DISCONNECTED.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    DISCONNECTING = "disconnecting"


class DeviceSession:
    """Exclusive owner of the device handle.

    Other components never see the handle. They draw, set LEDs and vibrate
    through the session, which bounds every hardware call with a timeout.
    """

    def __init__(self, config: DeviceConfig, discover_func: DiscoverFunc = discover) -> None:
        """Initialize a disconnected session.

        Args:
            config: Device settings (driver, lock file, timings).
            discover_func: Coroutine returning a connected handle for a driver name.
        """
        self._config = config
        self._discover = discover_func
        self._device: DeviceHandle | None = None
        self._state = SessionState.DISCONNECTED
        self._loop: asyncio.AbstractEventLoop | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self.lock = ProcessLock(
            config.lock_file,
            wait_timeout=config.lock_wait_timeout,
            poll_interval=config.lock_poll_interval,
        )

        self._cleanup: CleanupCallback | None = None
        self._exiting = False
        self._exit_task: asyncio.Task[None] | None = None
        self.exited = asyncio.Event()
        self.exit_code = 0

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Whether a device handle is open."""
        return self._device is not None

    @property
    def is_exiting(self) -> bool:
        """Whether shutdown has been requested."""
        return self._exiting

    @property
    def device_type(self) -> str:
        """Model name reported by the driver, or "none" when disconnected."""
        return self._device.type if self._device else "none"

    @property
    def buttons(self) -> list[int]:
        """Ids of the round buttons with LEDs."""
        return list(self._device.buttons) if self._device else []

    def geometry(self) -> GridGeometry:
        """Grid geometry of the connected device.

        Raises:
            DeviceError: If no device is connected.
        """
        if self._device is None:
            raise DeviceError("Device not connected")
        return GridGeometry.from_device(self._device)

    async def acquire_lock(self) -> bool:
        """Take the cross-process lock before touching the device."""
        return await self.lock.acquire()

    def release_lock(self) -> None:
        """Drop the cross-process lock; safe to call more than once."""
        self.lock.release()

    async def connect(self) -> None:
        """Discover the device and wait until it accepts commands.

        An existing handle is disconnected first. A shutdown requested while
        connecting interrupts the attempt.

        Raises:
            DeviceNotFoundError: If discovery fails.
            asyncio.CancelledError: If shutdown interrupted the attempt.
        """
        self._connect_task = asyncio.ensure_future(self._connect())
        try:
            await self._connect_task
        finally:
            self._connect_task = None

    async def _connect(self) -> None:
        logger.info("Searching for Loupedeck device...")
        if self._device is not None:
            logger.debug("Closing existing device connection first")
            await self.disconnect()

        self._loop = asyncio.get_running_loop()
        self._state = SessionState.CONNECTING
        try:
            device = await self._discover(self._config.driver)
        except Exception as e:
            self._state = SessionState.DISCONNECTED
            logger.error("Failed to connect to device: %s", e)
            raise

        self._device = device
        width, height = device.displays["center"]
        logger.info("Device found: %s", device.type)
        logger.info("  Screen: %dx%d, grid: %d columns x %d rows", width, height, device.columns, device.rows)

        self._install_default_handlers(device)
        await self.vibrate_pattern("connect")
        await self._wait_until_ready(device)
        self._state = SessionState.READY

    def _install_default_handlers(self, device: DeviceHandle) -> None:
        device.on("connect", lambda _data=None: logger.info("Device connected"))
        device.on("disconnect", self._on_device_disconnect)
        for event in RAW_EVENTS:
            device.on(event, functools.partial(self._log_raw_event, event))

    @staticmethod
    def _log_raw_event(event: str, data: Any = None) -> None:
        logger.debug("Device event: %s %r", event, data)

    def _on_device_disconnect(self, _data: Any = None) -> None:
        logger.warning("Device disconnected")
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.request_exit, "device disconnect")

    async def _wait_until_ready(self, device: DeviceHandle) -> bool:
        """Probe the device until it answers.

        A previous process may still be releasing the handle, so the first
        commands can time out. If the device never answers the session
        continues anyway; later LED and draw calls retry on their own.
        """
        attempts = self._config.ready_probe_attempts
        logger.debug("Waiting for device readiness (up to %d probes)...", attempts)
        for attempt in range(1, attempts + 1):
            try:
                await asyncio.wait_for(
                    device.set_button_color(PROBE_BUTTON, LED_OFF),
                    self._config.ready_probe_timeout,
                )
            except Exception as e:
                logger.debug("Readiness probe %d/%d failed: %s", attempt, attempts, e or type(e).__name__)
                if attempt < attempts:
                    await asyncio.sleep(self._config.ready_probe_interval)
                continue

            logger.debug("Device answered after %d probe(s), waiting %.1fs grace period", attempt, self._config.ready_grace_period)
            await asyncio.sleep(self._config.ready_grace_period)
            logger.debug("Device ready")
            return True

        logger.warning("Could not confirm device readiness (continuing)")
        return False

    def on(self, event: str, callback: EventCallback) -> None:
        """Subscribe to a device event."""
        if self._device is None:
            logger.warning("Device not connected, cannot subscribe to %s", event)
            return
        self._device.on(event, callback)

    async def draw_screen(self, region: str, draw_fn: DrawCallback) -> None:
        """Draw a display region.

        Raises:
            DeviceError: If no device is connected.
        """
        if self._device is None:
            raise DeviceError("Device not connected")
        await self._device.draw_screen(region, draw_fn)

    async def set_button_color(self, button_id: int, color: str, max_retries: int | None = None) -> bool:
        """Set a button LED, retrying with backoff.

        Never raises: an LED that fails to update is logged and skipped.

        Args:
            button_id: Round button id.
            color: Hex colour such as "#FF0000".
            max_retries: Attempts before giving up, defaulting to
                `led_max_retries`. Zero makes no attempt.

        Returns:
            True if the colour was applied.
        """
        device = self._device
        if device is None:
            logger.warning("Device not connected")
            return False

        retries = max_retries if max_retries is not None else self._config.led_max_retries
        for attempt in range(1, retries + 1):
            try:
                await asyncio.wait_for(device.set_button_color(button_id, color), self._config.led_timeout)
            except Exception as e:
                reason = str(e) or type(e).__name__
                if attempt == retries:
                    logger.warning("Failed to set button %s colour (skipped): %s", button_id, reason)
                    return False
                logger.debug(
                    "Failed to set button %s colour (attempt %d/%d), retrying in %.1fs: %s",
                    button_id,
                    attempt,
                    retries,
                    self._config.led_retry_backoff,
                    reason,
                )
                await asyncio.sleep(self._config.led_retry_backoff)
                continue

            logger.debug("Button %s colour set to %s", button_id, color)
            return True
        return False

    async def set_button_colors(self, colors: dict[int, str]) -> None:
        """Set several LEDs one after another with a short gap."""
        for button_id, color in colors.items():
            await self.set_button_color(button_id, color)
            await asyncio.sleep(0.1)

    async def vibrate(self, pattern: list[int]) -> None:
        """Play raw on/off durations in milliseconds; ignored when disconnected."""
        if self._device is None:
            return
        await self._device.vibrate(pattern)

    async def vibrate_pattern(self, name: str) -> None:
        """Play a named pattern from `VIBRATION_PATTERNS`."""
        await Vibration(self).vibrate_pattern(name)

    async def disconnect(self) -> None:
        """Blank the device, drop listeners and close the handle.

        Every step is best effort; the device may already be gone.
        """
        device = self._device
        if device is None:
            self._state = SessionState.DISCONNECTED
            return

        logger.info("Disconnecting device...")
        self._state = SessionState.DISCONNECTING
        try:
            await self._clear_device(device)
            device.remove_all_listeners()
            logger.debug("Event listeners removed")

            self._device = None
            close_task = asyncio.ensure_future(device.close())
            done, _ = await asyncio.wait({close_task}, timeout=self._config.close_timeout)
            if not done:
                logger.warning("Device close timed out")
                close_task.cancel()
            elif close_task.exception() is not None:
                logger.warning("Device close failed: %s", close_task.exception())
            logger.info("Device disconnected")
        except Exception:
            logger.exception("Error while disconnecting device")
        finally:
            self._device = None
            self._state = SessionState.DISCONNECTED

    async def _clear_device(self, device: DeviceHandle) -> None:
        """Turn every LED off and paint every screen black."""
        timeout = self._config.close_timeout

        async def quietly(call: Awaitable[None]) -> None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(call, timeout)

        await asyncio.gather(*(quietly(device.set_button_color(i, LED_OFF)) for i in device.buttons))
        logger.debug("Button LEDs turned off")

        for region, (width, height) in device.displays.items():
            box = (0, 0, width, height)
            await quietly(device.draw_screen(region, lambda draw, box=box: draw.rectangle(box, fill=LED_OFF)))
        logger.debug("Screens cleared")

    def install_exit_handlers(self, cleanup: CleanupCallback | None = None, signals: bool = True) -> None:
        """Route SIGINT/SIGTERM into a single bounded shutdown.

        Args:
            cleanup: Runs before the device is disconnected.
            signals: Register the signal handlers; without them only
                request_exit() and a device disconnect end the session.
        """
        self._cleanup = cleanup
        if not signals:
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
            loop.add_signal_handler(sig, self.request_exit, sig.name)

    def request_exit(self, reason: str) -> None:
        """Start shutdown once; later requests are ignored."""
        if self._exiting:
            logger.debug("Shutdown already in progress, ignoring %s", reason)
            return
        self._exiting = True
        self._exit_task = asyncio.get_running_loop().create_task(self._run_exit(reason), name="session-exit")

    async def wait_exit(self) -> int:
        """Wait until shutdown finished and return the exit code."""
        await self.exited.wait()
        return self.exit_code

    async def _run_exit(self, reason: str) -> None:
        logger.info("Received %s, shutting down...", reason)
        connecting = self._connect_task
        if connecting is not None and not connecting.done():
            logger.info("Interrupting device connection")
            connecting.cancel()
            await asyncio.wait({connecting})

        task = asyncio.ensure_future(self._cleanup_and_disconnect())
        done, _ = await asyncio.wait({task}, timeout=self._config.shutdown_timeout)
        if not done:
            logger.warning("Cleanup timed out after %.1fs, forcing exit", self._config.shutdown_timeout)
            task.cancel()
            self.exit_code = 0
        elif task.exception() is not None:
            logger.error("Error during shutdown: %s", task.exception())
            self.exit_code = 1
        else:
            logger.info("Shut down cleanly")
            self.exit_code = 0

        self.release_lock()
        self.exited.set()

    async def _cleanup_and_disconnect(self) -> None:
        try:
            if self._cleanup is not None:
                logger.debug("Running cleanup callback...")
                result = self._cleanup()
                if inspect.isawaitable(result):
                    await result
        finally:
            await self.disconnect()
