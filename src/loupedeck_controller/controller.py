"""Main controller wiring the device session, display router and handlers."""

import asyncio
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from loupedeck_controller.components import ComponentDeps, MediaPlayPauseButton, create_component
from loupedeck_controller.config import Settings
from loupedeck_controller.controls import AppLauncher, MediaControl, VolumeControl, WorkspaceControl
from loupedeck_controller.device import discover
from loupedeck_controller.exceptions import ConfigurationError
from loupedeck_controller.handlers import (
    MediaHandler,
    NotificationHandler,
    PageHandler,
    PhysicalButtonHandler,
    VolumeHandler,
)
from loupedeck_controller.layout import LayoutConfig, LayoutWatcher, default_layout, load_layout
from loupedeck_controller.models import ButtonEvent, RotateEvent, TouchStartEvent
from loupedeck_controller.mqtt_client import NotificationSubscriber
from loupedeck_controller.router import DisplayRouter
from loupedeck_controller.session import DeviceSession, DiscoverFunc
from loupedeck_controller.vibration import Vibration

logger = logging.getLogger(__name__)

WIRED_EVENTS = ("touchstart", "rotate", "down")

CONNECT_HINTS = (
    "Check that the device is plugged in and powered",
    "Close other applications that use the device (e.g. the vendor software)",
    "Check the udev rules / permissions of the serial device",
    "Set device.driver, or run with --mock to test without hardware",
)


class DeckController:
    """Runs one device session from lock acquisition to shutdown.

    Device events are queued and handled by a single consumer task in the
    order the device emitted them.
    """

    def __init__(
        self,
        settings: Settings,
        discover_func: DiscoverFunc = discover,
        volume: VolumeControl | None = None,
        media: MediaControl | None = None,
        workspaces: WorkspaceControl | None = None,
        launcher: AppLauncher | None = None,
        handle_signals: bool = True,
    ) -> None:
        """Initialize the controller.

        Args:
            settings: Application settings.
            discover_func: Device discovery coroutine.
            volume: Audio control (created when omitted).
            media: Media player control (created when omitted).
            workspaces: Workspace control (created when omitted).
            launcher: Application launcher (created when omitted).
            handle_signals: Install SIGINT/SIGTERM handlers.
        """
        self._settings = settings
        self._handle_signals = handle_signals
        self.session = DeviceSession(settings.device, discover_func)
        self.vibration = Vibration(self.session)

        self.volume = volume or VolumeControl()
        self.media = media or MediaControl()
        self.workspaces = workspaces or WorkspaceControl()
        self.launcher = launcher or AppLauncher()

        self.router: DisplayRouter | None = None
        self.layout: LayoutConfig | None = None
        self._events: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []
        self._render_task: asyncio.Task[None] | None = None
        self._subscriber: NotificationSubscriber | None = None

        self._volume_handler: VolumeHandler | None = None
        self._media_handler: MediaHandler | None = None
        self._page_handler: PageHandler | None = None
        self._button_handler: PhysicalButtonHandler | None = None
        self._notification_handler: NotificationHandler | None = None

    @property
    def layout_file(self) -> Path | None:
        return self._settings.display.layout_file

    async def run(self) -> int:
        """Run until shutdown.

        Returns:
            Process exit code.
        """
        try:
            layout = self._load_initial_layout()
        except ConfigurationError as e:
            logger.error("%s", e)
            return 1

        if not await self.session.acquire_lock():
            logger.info("Another instance owns the device, exiting")
            return 0

        # Signals during the readiness wait must still blank the device and release the lock
        self.session.install_exit_handlers(self._cleanup, signals=self._handle_signals)

        try:
            await self.session.connect()
        except asyncio.CancelledError:
            if not self.session.is_exiting:
                raise
            logger.info("Shutdown requested while connecting")
            return await self.session.wait_exit()
        except Exception as e:
            logger.error("Could not connect to the Loupedeck device: %s", e)
            for hint in CONNECT_HINTS:
                logger.error("  - %s", hint)
            await self.session.disconnect()
            self.session.release_lock()
            return 1

        if self.session.is_exiting:
            return await self.session.wait_exit()

        try:
            await self._start(layout)
        except Exception:
            logger.exception("Startup failed")
            self.session.request_exit("startup failure")
            await self.session.wait_exit()
            return 1

        logger.info("Controller running (device: %s)", self.session.device_type)
        return await self.session.wait_exit()

    def shutdown(self) -> None:
        """Request graceful shutdown."""
        self.session.request_exit("shutdown request")

    def _load_initial_layout(self) -> LayoutConfig:
        if self.layout_file is None:
            logger.info("No layout file configured, using the built-in layout")
            return default_layout()
        return load_layout(self.layout_file)

    async def _start(self, layout: LayoutConfig) -> None:
        await asyncio.gather(self.volume.initialize(), self.media.initialize(), self.workspaces.initialize())

        self.router = DisplayRouter(self.session, self.session.geometry())
        self._volume_handler = VolumeHandler(
            self.volume, self.router, step=self._settings.display.volume_step, vibration=self.vibration
        )
        self._media_handler = MediaHandler(self.media, self.router)
        self._page_handler = PageHandler(self.router, vibration=self.vibration)
        self._button_handler = PhysicalButtonHandler(self.router, self.launcher, {}, vibration=self.vibration)
        self._notification_handler = NotificationHandler(self.router)

        self.apply_layout(layout)
        await self._refresh_media_buttons()
        await self._apply_leds()

        loop = asyncio.get_running_loop()
        for event in WIRED_EVENTS:
            self.session.on(event, lambda data, event=event: loop.call_soon_threadsafe(self._events.put_nowait, (event, data)))

        self._tasks.append(loop.create_task(self._consume_events(), name="events"))
        self._render_task = self.router.start_auto_update(self._settings.display.render_interval)
        if self.media.available:
            self._tasks.append(loop.create_task(self._media_refresh_loop(), name="media-refresh"))
        if self.layout_file is not None:
            watcher = LayoutWatcher(self.layout_file, self.reload_layout, self._settings.display.layout_poll_interval)
            self._tasks.append(loop.create_task(watcher.run(), name="layout-watcher"))
        if self._settings.mqtt.enabled:
            self._subscriber = NotificationSubscriber(self._settings.mqtt, self._notification_handler.handle)
            self._tasks.append(loop.create_task(self._subscriber.run(), name="mqtt"))

    def apply_layout(self, layout: LayoutConfig) -> None:
        """Rebuild every page from a layout, cleaning up the old components."""
        assert self.router is not None
        deps = ComponentDeps(
            volume=self.volume,
            media=self.media,
            workspaces=self.workspaces,
            launcher=self.launcher,
            vibration=self.vibration,
            on_change=self.router.request_render,
            on_media_change=self._media_handler.show_overlay if self._media_handler else None,
        )
        for page in self.router.pages:
            self.router.clear_page(page)
        for page, page_config in sorted(layout.pages.items()):
            for name, descriptor in page_config.components.items():
                self.router.add_component(create_component(name, descriptor, deps), page, name)
            logger.info("Page %d (%s): %d components", page, page_config.meta.title or "untitled", len(page_config.components))

        assert self._button_handler is not None
        self._button_handler.update_buttons(layout.buttons)
        self.layout = layout

    async def reload_layout(self, layout: LayoutConfig) -> None:
        """Switch to a new validated layout while running."""
        self.apply_layout(layout)
        await self._refresh_media_buttons()
        await self._apply_leds()
        assert self.router is not None
        self.router.request_render()
        logger.info("Layout reloaded")

    async def _apply_leds(self) -> None:
        if self._settings.device.skip_led or self._button_handler is None:
            return
        buttons = set(self.session.buttons)
        colors = {i: color for i, color in self._button_handler.led_colors().items() if i in buttons}
        await self.session.set_button_colors(colors)

    async def _consume_events(self) -> None:
        while True:
            event, data = await self._events.get()
            try:
                await self._dispatch(event, data)
            except Exception:
                logger.exception("Error handling %s event", event)
            finally:
                self._events.task_done()

    async def drain_events(self) -> None:
        """Wait until every queued device event has been handled."""
        await self._events.join()

    async def _dispatch(self, event: str, data: Any) -> None:
        assert self.router is not None
        try:
            match event:
                case "touchstart":
                    await self._on_touch(TouchStartEvent.model_validate(data))
                case "rotate":
                    rotate = RotateEvent.model_validate(data)
                    if not await self._volume_handler.handle_rotate(rotate):
                        await self._page_handler.handle_rotate(rotate)
                case "down":
                    button = ButtonEvent.model_validate(data)
                    if isinstance(button.id, int):
                        await self._button_handler.handle_down(button)
                    elif not await self._volume_handler.handle_down(button):
                        await self._page_handler.handle_down(button)
                case _:
                    logger.debug("Unhandled event: %s", event)
        except ValidationError as e:
            logger.warning("Malformed %s event %r: %s", event, data, e)

    async def _on_touch(self, event: TouchStartEvent) -> None:
        assert self.router is not None
        for touch in event.changed_touches:
            cell = self.router.geometry.cell_at(touch.x, touch.y)
            if cell is None:
                logger.debug("Touch at (%.0f, %.0f) is outside the grid", touch.x, touch.y)
                continue
            if await self.router.handle_touch(*cell):
                self.router.request_render()

    async def _refresh_media_buttons(self) -> bool:
        if self.router is None or not self.media.available:
            return False
        changed = False
        for button in self.router.find_all(MediaPlayPauseButton):
            before = button.status
            changed |= await button.refresh() != before
        return changed

    async def _media_refresh_loop(self) -> None:
        interval = self._settings.display.media_refresh_interval
        while True:
            await asyncio.sleep(interval)
            try:
                if await self._refresh_media_buttons():
                    self.router.request_render()
            except Exception as e:
                logger.warning("Media status refresh failed: %s", e)

    async def _cleanup(self) -> None:
        """Stop background work before the session disconnects."""
        logger.info("Cleaning up resources...")
        if self.router is not None:
            await self.router.stop_auto_update(self._render_task)
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        if self._subscriber is not None:
            await self._subscriber.disconnect()
        if self.router is not None:
            for page in self.router.pages:
                for component in self.router.components(page):
                    component.cleanup()
